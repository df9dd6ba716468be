from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import requests

from podcast_config import ElevenLabsConfig
from podcast_errors import PodcastError, ProviderError, ValidationError
from podcast_models import GenerationSettings, Voice
from podcast_utils import AUDIO_MIME_TYPE, encode_audio


def _log(msg: str) -> None:
    print(f"[elevenlabs] {msg}")


@dataclass
class VoicesResult:
    success: bool
    voices: List[Voice] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "voices": [voice.to_dict() for voice in self.voices],
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class SpeechResult:
    success: bool
    voice_used: Voice
    settings_used: GenerationSettings
    audio_data: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "voice_used": self.voice_used.to_dict(),
            "settings_used": self.settings_used.to_dict(),
        }
        if self.success:
            payload["audio_data"] = self.audio_data
        else:
            payload["error"] = self.error or "Failed to generate speech"
        return payload


def _error_message(response: requests.Response) -> str:
    message = f"API request failed: {response.status_code} {response.reason or ''}".strip()
    try:
        data = response.json()
    except ValueError:
        return message
    if not isinstance(data, dict):
        return message
    detail = data.get("detail")
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    if data.get("message"):
        return str(data["message"])
    return message


class ElevenLabsClient:
    """Thin wrapper over the ElevenLabs voices and text-to-speech endpoints."""

    def __init__(self, config: ElevenLabsConfig, *, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.session = session or requests.Session()

    # ---------- low-level IO ----------
    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None,
    ) -> requests.Response:
        api_key = self.config.require_api_key()
        url = f"{self.config.base_url}{endpoint}"
        headers = {"xi-api-key": api_key, "Content-Type": "application/json"}
        if accept:
            headers["Accept"] = accept
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                json=json_body,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ProviderError(f"Failed to reach ElevenLabs: {exc}") from exc
        if not response.ok:
            raise ProviderError(_error_message(response), status=response.status_code)
        return response

    def _get_json(self, endpoint: str) -> Dict[str, Any]:
        response = self._request("GET", endpoint)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Invalid JSON from ElevenLabs {endpoint}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected payload from ElevenLabs {endpoint}")
        return data

    # ---------- voice directory ----------
    def list_voices(self) -> VoicesResult:
        try:
            data = self._get_json("/v1/voices")
        except PodcastError as exc:
            _log(f"Error fetching voices: {exc}")
            return VoicesResult(success=False, voices=[], error=str(exc))

        raw_voices = data.get("voices")
        if not isinstance(raw_voices, list):
            return VoicesResult(success=False, voices=[], error="Failed to fetch voices from ElevenLabs")
        voices = [Voice.from_raw(raw) for raw in raw_voices if isinstance(raw, Mapping)]
        return VoicesResult(success=True, voices=voices)

    def get_voice_details(self, voice_id: str) -> Optional[Voice]:
        try:
            return Voice.from_raw(self._get_json(f"/v1/voices/{quote(voice_id, safe='')}"))
        except PodcastError as exc:
            _log(f"Error fetching voice details for {voice_id}: {exc}")
            return None

    def get_user_info(self) -> Optional[Dict[str, Any]]:
        try:
            return self._get_json("/v1/user")
        except PodcastError as exc:
            _log(f"Error fetching user info: {exc}")
            return None

    def validate_api_key(self) -> bool:
        return self.get_user_info() is not None

    def _resolve_voice(self, voice_id: str) -> Voice:
        result = self.list_voices()
        return next((v for v in result.voices if v.voice_id == voice_id), Voice.unknown(voice_id))

    # ---------- speech ----------
    def generate_speech(
        self,
        text: str,
        voice_id: str,
        settings: Optional[Mapping[str, Any]] = None,
        *,
        voice: Optional[Voice] = None,
    ) -> SpeechResult:
        """Synthesize ``text`` with ``voice_id`` and return base64 MPEG audio.

        Pass ``voice`` when the caller already holds the Voice record; otherwise
        the directory is queried again to resolve its display name. Errors are
        folded into the returned envelope rather than raised.
        """
        try:
            if not text or not text.strip():
                raise ValidationError("Text content is required")
            if not voice_id:
                raise ValidationError("Voice ID is required")

            final_settings = GenerationSettings.merge(settings)
            body = {
                "text": text.strip(),
                "model_id": self.config.model_id,
                "voice_settings": final_settings.to_dict(),
            }
            response = self._request(
                "POST",
                f"/v1/text-to-speech/{quote(voice_id, safe='')}",
                json_body=body,
                accept=AUDIO_MIME_TYPE,
            )
            audio = response.content
            if not audio:
                raise ProviderError("Failed to generate speech: empty audio response")

            return SpeechResult(
                success=True,
                audio_data=encode_audio(audio),
                voice_used=voice or self._resolve_voice(voice_id),
                settings_used=final_settings,
            )
        except PodcastError as exc:
            _log(f"Error generating speech: {exc}")
            return SpeechResult(
                success=False,
                error=str(exc),
                voice_used=Voice.unknown(voice_id or ""),
                settings_used=GenerationSettings(),
            )
