from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Union

import requests

from podcast_errors import MediaError
from podcast_utils import from_data_url, generate_filename

if TYPE_CHECKING:
    from podcast_generator import PodcastAudio

SKIP_SECONDS = 10.0
DOWNLOAD_TIMEOUT_SECONDS = 60.0


def _log(msg: str) -> None:
    print(f"[player] {msg}")


class PlayerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


_PLAYABLE = {PlayerState.READY, PlayerState.PAUSED, PlayerState.ENDED}
_ADJUSTABLE_BLOCKED = {PlayerState.LOADING, PlayerState.ERROR}


@dataclass(frozen=True)
class PlayerSnapshot:
    state: PlayerState
    current_time: float
    duration: float
    volume: float
    error: Optional[str] = None

    @property
    def is_playing(self) -> bool:
        return self.state is PlayerState.PLAYING

    @property
    def is_loading(self) -> bool:
        return self.state is PlayerState.LOADING

    @property
    def is_ready(self) -> bool:
        return self.state not in {PlayerState.IDLE, PlayerState.LOADING, PlayerState.ERROR}


class MediaElement(Protocol):
    def load(self, data: bytes) -> None: ...

    def play(self, position: float) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def close(self) -> None: ...


class ExternalPlayerElement:
    """Play audio through ``ffplay`` (seek + volume) or macOS ``afplay``.

    The payload is written to a temporary file on ``load``. Pausing stops the
    player process; the next ``play`` restarts it at the tracked position.
    """

    def __init__(self) -> None:
        self._path: Optional[Path] = None
        self._process: Optional[subprocess.Popen] = None
        self._volume = 1.0

    def _command(self, position: float) -> List[str]:
        assert self._path is not None
        ffplay = shutil.which("ffplay")
        if ffplay:
            return [
                ffplay,
                "-nodisp",
                "-autoexit",
                "-loglevel",
                "quiet",
                "-ss",
                f"{position:.2f}",
                "-volume",
                str(int(round(self._volume * 100))),
                str(self._path),
            ]
        afplay = shutil.which("afplay")
        if afplay:
            return [afplay, "-v", f"{self._volume:.2f}", str(self._path)]
        raise MediaError("No audio player found (install ffmpeg for ffplay).")

    def load(self, data: bytes) -> None:
        self.close()
        fd, name = tempfile.mkstemp(prefix="podcast-", suffix=".mp3")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        self._path = Path(name)

    def play(self, position: float) -> None:
        if self._path is None:
            raise MediaError("No audio loaded.")
        self.pause()
        try:
            self._process = subprocess.Popen(self._command(position))  # nosec - local player binary
        except OSError as exc:
            raise MediaError(f"Failed to start audio player: {exc}") from exc

    def pause(self) -> None:
        if self._process is not None and self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        self._process = None

    def seek(self, position: float) -> None:
        # Applied on the next play().
        return None

    def set_volume(self, volume: float) -> None:
        self._volume = volume

    def wait(self) -> bool:
        """Block until playback stops; True when the player exited cleanly."""
        if self._process is None:
            return False
        code = self._process.wait()
        self._process = None
        return code == 0

    def close(self) -> None:
        self.pause()
        if self._path is not None:
            self._path.unlink(missing_ok=True)
            self._path = None


class PlaybackController:
    """State machine around a single media element.

    ``idle -> loading -> ready <-> playing <-> paused -> ended``; any media
    error moves to ``error``. Element events are fed in through the
    ``handle_*`` methods.
    """

    def __init__(
        self,
        element: Optional[MediaElement] = None,
        *,
        on_time_update: Optional[Callable[[float], None]] = None,
        on_ended: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.element = element
        self.on_time_update = on_time_update
        self.on_ended = on_ended
        self.on_error = on_error

        self.audio: Optional[PodcastAudio] = None
        self.state = PlayerState.IDLE
        self.current_time = 0.0
        self.duration = 0.0
        self.volume = 1.0
        self.error: Optional[str] = None

    # ---------- source ----------
    def load(self, audio: PodcastAudio) -> None:
        self.audio = audio
        self.state = PlayerState.LOADING
        self.current_time = 0.0
        self.duration = 0.0
        self.error = None
        if self.element is None:
            return
        try:
            self.element.load(self._materialise())
        except MediaError as exc:
            self.handle_error(str(exc))

    # ---------- element events ----------
    def handle_loaded_metadata(self, duration: float) -> None:
        if self.state is not PlayerState.LOADING:
            return
        self.duration = max(float(duration or 0.0), 0.0)
        self.state = PlayerState.READY

    def handle_time_update(self, current_time: float) -> None:
        if self.state in _ADJUSTABLE_BLOCKED or self.state is PlayerState.IDLE:
            return
        self.current_time = self._clamp(current_time)
        if self.on_time_update:
            self.on_time_update(self.current_time)

    def handle_ended(self) -> None:
        if self.state in _ADJUSTABLE_BLOCKED or self.state is PlayerState.IDLE:
            return
        self.state = PlayerState.ENDED
        self.current_time = 0.0
        if self.on_ended:
            self.on_ended()

    def handle_error(self, message: str = "Audio loading error") -> None:
        _log(message)
        self.state = PlayerState.ERROR
        self.error = message
        if self.on_error:
            self.on_error(message)

    # ---------- transport ----------
    def play(self) -> bool:
        if self.state not in _PLAYABLE:
            return False
        if self.element is not None:
            try:
                self.element.play(self.current_time)
            except MediaError as exc:
                self.handle_error(str(exc))
                return False
        self.state = PlayerState.PLAYING
        return True

    def pause(self) -> bool:
        if self.state is not PlayerState.PLAYING:
            return False
        if self.element is not None:
            self.element.pause()
        self.state = PlayerState.PAUSED
        return True

    def toggle_play_pause(self) -> bool:
        if self.state is PlayerState.PLAYING:
            return self.pause()
        return self.play()

    def seek(self, position: float) -> float:
        if self.state in _ADJUSTABLE_BLOCKED:
            return self.current_time
        self.current_time = self._clamp(position)
        if self.element is not None:
            self.element.seek(self.current_time)
        return self.current_time

    def skip(self, seconds: float = SKIP_SECONDS) -> float:
        return self.seek(self.current_time + seconds)

    def set_volume(self, volume: float) -> float:
        if self.state in _ADJUSTABLE_BLOCKED:
            return self.volume
        self.volume = min(max(float(volume), 0.0), 1.0)
        if self.element is not None:
            self.element.set_volume(self.volume)
        return self.volume

    def toggle_mute(self) -> float:
        return self.set_volume(0.0 if self.volume > 0 else 1.0)

    # ---------- inspection ----------
    def snapshot(self) -> PlayerSnapshot:
        return PlayerSnapshot(
            state=self.state,
            current_time=self.current_time,
            duration=self.duration,
            volume=self.volume,
            error=self.error,
        )

    @property
    def progress_percentage(self) -> float:
        if self.duration <= 0:
            return 0.0
        return self.current_time / self.duration * 100

    # ---------- download ----------
    def download(self, target: Union[str, Path] = ".", *, now: Optional[datetime] = None) -> Path:
        """Write the current audio to disk and return the written path.

        ``target`` is a directory (the name is derived from the text, voice and
        time) or an explicit file path.
        """
        if self.audio is None:
            raise MediaError("No audio loaded.")
        data = self._materialise()
        target_str = str(target)
        target_path = Path(target_str)
        if target_path.is_dir() or target_str.endswith(("/", os.sep)):
            filename = generate_filename(self.audio.original_text, self.audio.voice.name, now=now)
            target_path = target_path / filename
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_bytes(data)
        return target_path.resolve()

    def close(self) -> None:
        if self.element is not None:
            self.element.close()

    def _materialise(self) -> bytes:
        assert self.audio is not None
        if self.audio.blob:
            return self.audio.blob
        url = self.audio.url or ""
        if url.startswith("data:"):
            return from_data_url(url)
        if url.startswith(("http://", "https://")):
            try:
                response = requests.get(url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
                response.raise_for_status()
            except requests.RequestException as exc:
                raise MediaError(f"Failed to fetch audio from {url}: {exc}") from exc
            return response.content
        raise MediaError("Audio has no playable payload.")

    def _clamp(self, position: float) -> float:
        return min(max(float(position), 0.0), self.duration)
