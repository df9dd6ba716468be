from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from podcast_errors import MediaError, ValidationError

MIN_TEXT_LENGTH = 10
MAX_TEXT_LENGTH = 5000
AUDIO_MIME_TYPE = "audio/mpeg"

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Text validation
# ---------------------------------------------------------------------------


def validate_text(text: Optional[str]) -> str:
    """Check text bounds and return it unchanged; raise ``ValidationError`` otherwise."""
    if not text or not text.strip():
        raise ValidationError("Text content is required")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Text content must be less than {MAX_TEXT_LENGTH} characters")
    if len(text) < MIN_TEXT_LENGTH:
        raise ValidationError(f"Text content must be at least {MIN_TEXT_LENGTH} characters")
    return text


def check_text(text: Optional[str]) -> Tuple[bool, Optional[str]]:
    try:
        validate_text(text)
    except ValidationError as exc:
        return False, str(exc)
    return True, None


# ---------------------------------------------------------------------------
# Base64 audio transport
# ---------------------------------------------------------------------------


def encode_audio(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_audio(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MediaError(f"Audio payload is not valid base64: {exc}") from exc


def to_data_url(data: bytes, mime_type: str = AUDIO_MIME_TYPE) -> str:
    return f"data:{mime_type};base64,{encode_audio(data)}"


def from_data_url(url: str) -> bytes:
    if not url.startswith("data:") or "," not in url:
        raise MediaError("Not a base64 data URL.")
    header, payload = url.split(",", 1)
    if not header.endswith(";base64"):
        raise MediaError("Only base64 data URLs are supported.")
    return decode_audio(payload)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def get_audio_format(name_or_mime: Optional[str]) -> str:
    """Guess ``mp3`` / ``wav`` / ``ogg`` from a filename or MIME type."""
    value = (name_or_mime or "").lower()
    if "/" in value:
        if "wav" in value:
            return "wav"
        if "ogg" in value:
            return "ogg"
        return "mp3"
    extension = value.rsplit(".", 1)[-1] if "." in value else ""
    if extension in {"wav", "ogg"}:
        return extension
    return "mp3"


def format_duration(seconds: float) -> str:
    total = max(int(seconds or 0), 0)
    return f"{total // 60}:{total % 60:02d}"


def format_file_size(size: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1
    return f"{value:.1f} {units[unit_index]}"


def sanitize_filename(value: str) -> str:
    cleaned = _INVALID_FILENAME_CHARS.sub("_", value)
    cleaned = _WHITESPACE.sub("_", cleaned)
    return cleaned.lower()


def generate_filename(text: str, voice_name: str, *, now: Optional[datetime] = None) -> str:
    """Build ``podcast_<voice>_<text>_<timestamp>.mp3`` for a download."""
    moment = now or datetime.now(timezone.utc)
    timestamp = moment.strftime("%Y%m%dT%H%M%S")
    short_text = sanitize_filename(text[:30].strip())
    voice = sanitize_filename(voice_name)
    return f"podcast_{voice}_{short_text}_{timestamp}.mp3"
