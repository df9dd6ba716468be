from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from podcast_errors import ConfigError

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_TIMEOUT_SECONDS = 120.0


@dataclass(frozen=True)
class ElevenLabsConfig:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    model_id: str = DEFAULT_MODEL_ID
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @staticmethod
    def from_env() -> "ElevenLabsConfig":
        api_key = os.environ.get("ELEVENLABS_API_KEY") or None
        base_url = (os.environ.get("ELEVENLABS_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        model_id = os.environ.get("ELEVENLABS_MODEL_ID") or DEFAULT_MODEL_ID

        timeout_raw = os.environ.get("ELEVENLABS_TIMEOUT")
        timeout_seconds = DEFAULT_TIMEOUT_SECONDS
        if timeout_raw:
            try:
                timeout_seconds = float(timeout_raw)
            except ValueError as exc:
                raise ValueError("ELEVENLABS_TIMEOUT must be a number (seconds).") from exc

        return ElevenLabsConfig(
            api_key=api_key,
            base_url=base_url,
            model_id=model_id,
            timeout_seconds=timeout_seconds,
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError("ElevenLabs API key not configured")
        return self.api_key


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 7860
    api_prefix: str = "api"

    @staticmethod
    def from_env() -> "ServerConfig":
        host = os.environ.get("BACKEND_HOST", os.environ.get("HOST", "127.0.0.1"))
        port = int(os.environ.get("BACKEND_PORT", os.environ.get("PORT", "7860")))
        api_prefix = os.environ.get("API_PREFIX", "api").strip("/")
        return ServerConfig(host=host, port=port, api_prefix=api_prefix)
