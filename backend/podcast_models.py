from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional

from podcast_errors import ValidationError

VOICE_CATEGORIES = ("premade", "cloned", "professional", "generated", "general")
DEFAULT_CATEGORY = "general"
UNKNOWN_VOICE_NAME = "Unknown Voice"

_UNIT_FIELDS = ("stability", "similarity_boost", "style")


def _coerce_number(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Setting '{key}' must be numeric.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Setting '{key}' must be numeric.") from exc
    if not math.isfinite(number):
        raise ValidationError(f"Setting '{key}' must be a finite number.")
    return number


@dataclass(frozen=True)
class VoiceSettings:
    """Default tuning a provider voice ships with."""

    stability: float = 0.5
    similarity_boost: float = 0.5
    style: float = 0.0
    use_speaker_boost: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "VoiceSettings":
        defaults = cls()
        values: Dict[str, Any] = {}
        for key, default in asdict(defaults).items():
            value = raw.get(key)
            values[key] = default if value is None else value
        values["use_speaker_boost"] = bool(values["use_speaker_boost"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Voice:
    voice_id: str
    name: str
    category: str = DEFAULT_CATEGORY
    description: Optional[str] = None
    preview_url: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    settings: Optional[VoiceSettings] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Voice":
        settings_raw = raw.get("settings")
        labels = raw.get("labels")
        return cls(
            voice_id=str(raw.get("voice_id") or ""),
            name=str(raw.get("name") or ""),
            category=str(raw.get("category") or DEFAULT_CATEGORY),
            description=raw.get("description"),
            preview_url=raw.get("preview_url"),
            labels=dict(labels) if isinstance(labels, Mapping) else {},
            settings=VoiceSettings.from_raw(settings_raw) if isinstance(settings_raw, Mapping) else None,
        )

    @classmethod
    def unknown(cls, voice_id: str) -> "Voice":
        return cls(voice_id=voice_id, name=UNKNOWN_VOICE_NAME, category=DEFAULT_CATEGORY)

    @classmethod
    def blank(cls, voice_id: str = "") -> "Voice":
        # Placeholder for responses rejected before any voice lookup.
        return cls(voice_id=voice_id, name="", category="")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "preview_url": self.preview_url,
            "labels": dict(self.labels),
            "settings": self.settings.to_dict() if self.settings else None,
        }


@dataclass(frozen=True)
class GenerationSettings:
    stability: float = 0.5
    similarity_boost: float = 0.5
    style: float = 0.0
    use_speaker_boost: bool = False
    speed: float = 1.0

    @classmethod
    def merge(cls, overrides: Optional[Mapping[str, Any]] = None) -> "GenerationSettings":
        """Overlay caller settings on the defaults.

        Keys that are missing or ``None`` keep their default; unknown keys are
        ignored. Raises ``ValidationError`` for out-of-range values.
        """
        if overrides is None:
            return cls()
        if not isinstance(overrides, Mapping):
            raise ValidationError("Field 'settings' must be an object.")

        values = asdict(cls())
        for key in values:
            value = overrides.get(key)
            if value is not None:
                values[key] = value

        for key in _UNIT_FIELDS:
            number = _coerce_number(key, values[key])
            if not 0.0 <= number <= 1.0:
                raise ValidationError(f"Setting '{key}' must be between 0 and 1.")
            values[key] = number

        speed = _coerce_number("speed", values["speed"])
        if speed <= 0:
            raise ValidationError("Setting 'speed' must be greater than 0.")
        values["speed"] = speed

        if not isinstance(values["use_speaker_boost"], bool):
            raise ValidationError("Setting 'use_speaker_boost' must be true or false.")

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
