from __future__ import annotations

from typing import Optional


class PodcastError(Exception):
    """Raise for user-facing errors that should become JSON responses."""

    def __init__(self, message: str, status: int = 500, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class ValidationError(PodcastError):
    """Bad user input: text bounds, missing voice, malformed settings."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message, status=status, code="VALIDATION_ERROR")


class ConfigError(PodcastError):
    """Missing upstream credential or unusable configuration."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message, status=status, code="CONFIG_ERROR")


class ProviderError(PodcastError):
    """Upstream non-2xx response or transport failure."""

    def __init__(self, message: str, status: int = 502) -> None:
        super().__init__(message, status=status, code="API_ERROR")


class MediaError(PodcastError):
    """Local audio decode or playback failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=500, code="MEDIA_ERROR")
