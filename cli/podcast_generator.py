from __future__ import annotations

import io
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import requests
import soundfile as sf

from audio_player import PlaybackController
from podcast_errors import MediaError, PodcastError, ProviderError, ValidationError
from podcast_models import GenerationSettings, Voice
from podcast_utils import AUDIO_MIME_TYPE, decode_audio, get_audio_format, to_data_url, validate_text

DEFAULT_API_BASE = "http://127.0.0.1:7860/api"
DEFAULT_TIMEOUT_SECONDS = 180.0

_SOUNDFILE_FORMATS = {"MPEG": "mp3", "MP3": "mp3", "WAV": "wav", "OGG": "ogg"}


def _log(msg: str) -> None:
    print(f"[generator] {msg}")


@dataclass(frozen=True)
class AudioMetadata:
    format: str = "mp3"
    duration: float = 0.0
    bitrate: Optional[int] = None
    sample_rate: Optional[int] = None
    channels: Optional[int] = None


@dataclass
class PodcastAudio:
    id: str
    url: str
    metadata: AudioMetadata
    settings: GenerationSettings
    voice: Voice
    original_text: str
    blob: Optional[bytes] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class GenerationStage(str, Enum):
    PREPARING = "preparing"
    GENERATING = "generating"
    PROCESSING = "processing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class GenerationState:
    is_generating: bool = False
    stage: Optional[GenerationStage] = None
    error: Optional[str] = None


def read_audio_metadata(data: bytes, mime_type: str = AUDIO_MIME_TYPE) -> AudioMetadata:
    """Read duration, sample rate and channel count from encoded audio bytes."""
    try:
        info = sf.info(io.BytesIO(data))
    except (RuntimeError, TypeError, ValueError) as exc:
        raise MediaError(f"Failed to load audio metadata: {exc}") from exc
    return AudioMetadata(
        format=_SOUNDFILE_FORMATS.get(str(info.format).upper(), get_audio_format(mime_type)),
        duration=float(info.duration),
        sample_rate=int(info.samplerate),
        channels=int(info.channels),
    )


class PodcastGenerator:
    """Drive the local generate endpoint and hand results to a player."""

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        *,
        player: Optional[PlaybackController] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.player = player
        self.session = session or requests.Session()
        self.timeout = timeout
        self.state = GenerationState()

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Tuple[Dict[str, Any], int]:
        url = f"{self.api_base}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ProviderError(f"Failed to reach {url}: {exc}") from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"HTTP {response.status_code} for {method} {url}: {response.text[:200]}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response from {method} {url}")
        return data, response.status_code

    def fetch_voices(self) -> List[Voice]:
        data, status = self._request("GET", "voices")
        if not data.get("success"):
            raise ProviderError(data.get("error") or "Failed to fetch voices", status=status)
        return [Voice.from_raw(raw) for raw in data.get("voices") or [] if isinstance(raw, Mapping)]

    def generate(
        self,
        text: str,
        voice: Optional[Voice],
        settings: Union[GenerationSettings, Mapping[str, Any], None] = None,
    ) -> PodcastAudio:
        try:
            return self._generate(text, voice, settings)
        except PodcastError as exc:
            _log(f"Error generating podcast: {exc}")
            self.state = GenerationState(is_generating=False, error=str(exc))
            raise

    def _generate(
        self,
        text: str,
        voice: Optional[Voice],
        settings: Union[GenerationSettings, Mapping[str, Any], None],
    ) -> PodcastAudio:
        if voice is None or not voice.voice_id:
            raise ValidationError("Voice ID is required")
        validate_text(text)
        if not isinstance(settings, GenerationSettings):
            settings = GenerationSettings.merge(settings)

        self.state = GenerationState(is_generating=True, stage=GenerationStage.PREPARING)
        body = {"text": text.strip(), "voice_id": voice.voice_id, "settings": settings.to_dict()}

        self.state = GenerationState(is_generating=True, stage=GenerationStage.GENERATING)
        data, status = self._request("POST", "generate-podcast", body)
        if not data.get("success"):
            raise ProviderError(data.get("error") or "Failed to generate podcast", status=status)

        self.state = GenerationState(is_generating=True, stage=GenerationStage.PROCESSING)
        audio_data = data.get("audio_data")
        if not audio_data:
            raise MediaError("No audio data received")
        blob = decode_audio(audio_data)

        try:
            metadata = read_audio_metadata(blob)
        except MediaError as exc:
            _log(f"Error getting audio metadata: {exc}")
            metadata = AudioMetadata(format="mp3", duration=0.0)

        settings_raw = data.get("settings_used")
        voice_raw = data.get("voice_used")
        audio = PodcastAudio(
            id=uuid.uuid4().hex,
            url=to_data_url(blob),
            blob=blob,
            metadata=metadata,
            settings=GenerationSettings.merge(settings_raw) if isinstance(settings_raw, Mapping) else settings,
            voice=Voice.from_raw(voice_raw) if isinstance(voice_raw, Mapping) else voice,
            original_text=text.strip(),
        )

        if self.player is not None:
            self.player.load(audio)
            self.player.handle_loaded_metadata(metadata.duration)

        self.state = GenerationState(is_generating=False, stage=GenerationStage.COMPLETE)
        return audio
