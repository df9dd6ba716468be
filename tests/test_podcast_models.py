import pytest

from podcast_errors import ValidationError
from podcast_models import GenerationSettings, Voice, VoiceSettings

DEFAULTS = {
    "stability": 0.5,
    "similarity_boost": 0.5,
    "style": 0,
    "use_speaker_boost": False,
    "speed": 1.0,
}


def test_merge_without_overrides_returns_defaults():
    assert GenerationSettings.merge(None).to_dict() == DEFAULTS
    assert GenerationSettings.merge({}).to_dict() == DEFAULTS


def test_merge_is_left_biased():
    merged = GenerationSettings.merge({"stability": 0.9, "use_speaker_boost": True})
    assert merged.to_dict() == {**DEFAULTS, "stability": 0.9, "use_speaker_boost": True}


def test_merge_treats_null_as_absent_and_ignores_unknown_keys():
    merged = GenerationSettings.merge({"style": None, "speed": 1.25, "pitch": 3})
    assert merged.to_dict() == {**DEFAULTS, "speed": 1.25}


def test_merge_keeps_explicit_zero():
    merged = GenerationSettings.merge({"stability": 0, "similarity_boost": 0})
    assert merged.stability == 0
    assert merged.similarity_boost == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"stability": 1.5},
        {"similarity_boost": -0.1},
        {"style": "loud"},
        {"speed": 0},
        {"speed": -1},
        {"speed": float("nan")},
        {"speed": float("inf")},
        {"stability": float("nan")},
        {"use_speaker_boost": "yes"},
        {"stability": True},
    ],
)
def test_merge_rejects_out_of_range_values(overrides):
    with pytest.raises(ValidationError):
        GenerationSettings.merge(overrides)


def test_merge_rejects_non_mapping():
    with pytest.raises(ValidationError, match="must be an object"):
        GenerationSettings.merge([0.5])


def test_voice_from_raw_normalises_provider_record():
    voice = Voice.from_raw(
        {
            "voice_id": "abc123",
            "name": "Rachel",
            "description": "Calm",
            "settings": {"stability": 0.7},
            "samples": [],
        }
    )
    assert voice.category == "general"
    assert voice.labels == {}
    assert voice.settings == VoiceSettings(stability=0.7, similarity_boost=0.5, style=0.0, use_speaker_boost=False)
    assert voice.to_dict()["settings"] == {
        "stability": 0.7,
        "similarity_boost": 0.5,
        "style": 0.0,
        "use_speaker_boost": False,
    }


def test_voice_without_settings_serialises_null_settings():
    voice = Voice.from_raw({"voice_id": "v", "name": "V", "category": "cloned"})
    data = voice.to_dict()
    assert data["category"] == "cloned"
    assert data["settings"] is None
    assert data["description"] is None


def test_fallback_voices():
    assert Voice.unknown("v1").to_dict()["name"] == "Unknown Voice"
    blank = Voice.blank()
    assert (blank.voice_id, blank.name, blank.category) == ("", "", "")
