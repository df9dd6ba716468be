from __future__ import annotations

import json
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Blueprint, Flask, current_app, jsonify, make_response, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from elevenlabs_client import ElevenLabsClient
from podcast_config import ElevenLabsConfig, ServerConfig
from podcast_errors import PodcastError, ValidationError
from podcast_models import GenerationSettings, Voice
from podcast_utils import validate_text

VOICES_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"
CLIENT_EXTENSION = "elevenlabs_client"


def _log(msg: str) -> None:
    print(f"[podcast] {msg}")


api = Blueprint("api", __name__)


def _client() -> ElevenLabsClient:
    return current_app.extensions[CLIENT_EXTENSION]


def parse_json_request() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        try:
            data = json.loads(request.data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(f"Invalid JSON payload: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("JSON payload must be an object.")
    return data


def _generation_failure(message: str, status: int, *, voice_id: str = ""):
    payload = {
        "success": False,
        "error": message,
        "voice_used": Voice.blank(voice_id).to_dict(),
        "settings_used": GenerationSettings().to_dict(),
    }
    return make_response(jsonify(payload), status)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@api.route("/generate-podcast", methods=["POST"])
def generate_podcast_endpoint():
    voice_id = ""
    try:
        payload = parse_json_request()
        text = payload.get("text")
        if not text or not isinstance(text, str):
            raise ValidationError("Text content is required")
        if not payload.get("voice_id"):
            raise ValidationError("Voice ID is required")
        voice_id = str(payload["voice_id"])

        validate_text(text)
        settings = payload.get("settings")
        GenerationSettings.merge(settings)

        _log(f"Generating podcast for voice {voice_id} with {len(text)} characters")
        result = _client().generate_speech(text, voice_id, settings)
    except ValidationError as exc:
        return _generation_failure(str(exc), 400, voice_id=voice_id)
    except Exception as exc:
        _log(f"Error in generate-podcast route: {exc}")
        return _generation_failure(str(exc) or "Internal server error", 500)

    if not result.success:
        _log(f"Failed to generate podcast: {result.error}")
        return make_response(jsonify(result.to_dict()), 500)

    _log("Successfully generated podcast audio")
    return make_response(jsonify(result.to_dict()), 200)


@api.route("/voices", methods=["GET"])
def voices_endpoint():
    _log("Fetching voices from ElevenLabs...")
    try:
        result = _client().list_voices()
    except Exception as exc:
        _log(f"Error in voices route: {exc}")
        payload = {"success": False, "error": str(exc) or "Internal server error", "voices": []}
        return make_response(jsonify(payload), 500)

    if not result.success:
        _log(f"Failed to fetch voices: {result.error}")
        payload = {"success": False, "error": result.error or "Failed to fetch voices", "voices": []}
        return make_response(jsonify(payload), 500)

    _log(f"Successfully fetched {len(result.voices)} voices")
    response = make_response(jsonify(result.to_dict()), 200)
    response.headers["Cache-Control"] = VOICES_CACHE_CONTROL
    return response


@api.route("/meta", methods=["GET"])
def meta_endpoint():
    server_config: ServerConfig = current_app.config["SERVER_CONFIG"]
    client = _client()
    return jsonify(
        {
            "api_prefix": server_config.api_prefix,
            "port": server_config.port,
            "model_id": client.config.model_id,
            "has_api_key": client.config.has_api_key,
        }
    )


def health_check():
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------------------
# Flask app
# ---------------------------------------------------------------------------


def create_app(
    config: Optional[ElevenLabsConfig] = None,
    server_config: Optional[ServerConfig] = None,
    *,
    client: Optional[ElevenLabsClient] = None,
) -> Flask:
    config = config or ElevenLabsConfig.from_env()
    server_config = server_config or ServerConfig.from_env()

    app = Flask(__name__)
    app.config["SERVER_CONFIG"] = server_config
    app.extensions[CLIENT_EXTENSION] = client or ElevenLabsClient(config)

    prefix = f"/{server_config.api_prefix}" if server_config.api_prefix else ""
    CORS(
        app,
        resources={
            f"{prefix}/generate-podcast": {"methods": ["POST", "OPTIONS"]},
            f"{prefix}/voices": {"methods": ["GET", "OPTIONS"]},
        },
        origins="*",
        send_wildcard=True,
        allow_headers=["Content-Type"],
    )

    @app.errorhandler(PodcastError)
    def handle_podcast_error(err: PodcastError):
        payload = {"error": str(err), "status": err.status}
        return make_response(jsonify(payload), err.status)

    @app.errorhandler(Exception)
    def handle_generic_error(err: Exception):  # pragma: no cover
        if isinstance(err, HTTPException):
            return err
        payload = {"error": str(err), "status": 500}
        return make_response(jsonify(payload), 500)

    app.register_blueprint(api, url_prefix=prefix or None)
    app.add_url_rule("/health", endpoint="health_check", view_func=health_check, methods=["GET"])
    return app


def main() -> None:
    load_dotenv(".env", override=False)
    config = ElevenLabsConfig.from_env()
    server_config = ServerConfig.from_env()
    if not config.has_api_key:
        _log("ELEVENLABS_API_KEY not found in environment variables")

    app = create_app(config, server_config)
    _log(f"ElevenLabs base URL: {config.base_url}")
    _log(f"Model: {config.model_id}")
    _log(f"API prefix: /{server_config.api_prefix}")
    app.run(host=server_config.host, port=server_config.port, debug=False)


if __name__ == "__main__":
    main()
