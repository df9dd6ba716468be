import subprocess
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from audio_player import ExternalPlayerElement, PlaybackController, PlayerState
from helpers import http_response
from podcast_errors import MediaError
from podcast_generator import AudioMetadata, PodcastAudio
from podcast_models import GenerationSettings, Voice
from podcast_utils import to_data_url

AUDIO = b"ID3\x04\x00fake-mpeg-frames"
TEXT = "Hello world, this is a test."


def _audio(*, blob=AUDIO, url=None):
    return PodcastAudio(
        id="1",
        url=url if url is not None else to_data_url(AUDIO),
        blob=blob,
        metadata=AudioMetadata(duration=120.0),
        settings=GenerationSettings(),
        voice=Voice(voice_id="abc123", name="Rachel", category="premade"),
        original_text=TEXT,
    )


class FakeElement:
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name == self.fail_on:
            raise MediaError(f"{name} failed")

    def load(self, data):
        self._record("load", data)

    def play(self, position):
        self._record("play", position)

    def pause(self):
        self._record("pause")

    def seek(self, position):
        self._record("seek", position)

    def set_volume(self, volume):
        self._record("set_volume", volume)

    def close(self):
        self._record("close")


@pytest.fixture
def element():
    return FakeElement()


@pytest.fixture
def ready_player(element):
    player = PlaybackController(element)
    player.load(_audio())
    player.handle_loaded_metadata(120.0)
    return player


def test_load_moves_idle_to_loading_and_hands_bytes_to_element(element):
    player = PlaybackController(element)
    assert player.state is PlayerState.IDLE

    player.load(_audio())

    assert player.state is PlayerState.LOADING
    assert element.calls == [("load", AUDIO)]


def test_play_is_inert_before_ready(element):
    player = PlaybackController(element)
    assert player.play() is False
    assert player.state is PlayerState.IDLE

    player.load(_audio())
    assert player.toggle_play_pause() is False
    assert player.state is PlayerState.LOADING
    assert ("play", 0.0) not in element.calls


def test_metadata_moves_to_ready_and_records_duration(ready_player):
    assert ready_player.state is PlayerState.READY
    assert ready_player.duration == 120.0
    assert ready_player.snapshot().is_ready


def test_toggle_cycles_between_playing_and_paused(ready_player, element):
    assert ready_player.toggle_play_pause()
    assert ready_player.state is PlayerState.PLAYING
    assert ready_player.toggle_play_pause()
    assert ready_player.state is PlayerState.PAUSED
    assert ready_player.toggle_play_pause()
    assert ready_player.state is PlayerState.PLAYING
    assert [c[0] for c in element.calls[1:]] == ["play", "pause", "play"]


@pytest.mark.parametrize("target, expected", [(-5, 0.0), (60, 60.0), (500, 120.0)])
def test_seek_clamps_to_duration(ready_player, target, expected):
    assert ready_player.seek(target) == expected
    assert ready_player.current_time == expected
    assert ready_player.state is PlayerState.READY


def test_skip_moves_relative_and_clamps(ready_player):
    ready_player.seek(115)
    assert ready_player.skip() == 120.0
    assert ready_player.skip(-10) == 110.0
    ready_player.seek(3)
    assert ready_player.skip(-10) == 0.0


def test_seek_and_volume_are_ignored_while_loading(element):
    player = PlaybackController(element)
    player.load(_audio())

    assert player.seek(30) == 0.0
    assert player.set_volume(0.2) == 1.0
    assert [c[0] for c in element.calls] == ["load"]


def test_volume_clamps_and_mute_toggles(ready_player):
    assert ready_player.set_volume(1.7) == 1.0
    assert ready_player.set_volume(-1) == 0.0
    assert ready_player.toggle_mute() == 1.0
    assert ready_player.toggle_mute() == 0.0
    ready_player.set_volume(0.4)
    assert ready_player.toggle_mute() == 0.0


def test_time_update_notifies_listener():
    seen = []
    player = PlaybackController(on_time_update=seen.append)
    player.load(_audio())
    player.handle_loaded_metadata(120.0)
    player.play()

    player.handle_time_update(42.5)

    assert player.current_time == 42.5
    assert seen == [42.5]
    assert player.progress_percentage == pytest.approx(42.5 / 120 * 100)


def test_natural_end_resets_position_and_notifies():
    ended = MagicMock()
    player = PlaybackController(on_ended=ended)
    player.load(_audio())
    player.handle_loaded_metadata(120.0)
    player.play()
    player.handle_time_update(119.0)

    player.handle_ended()

    assert player.state is PlayerState.ENDED
    assert player.current_time == 0.0
    ended.assert_called_once_with()
    assert player.play()
    assert player.state is PlayerState.PLAYING


def test_media_error_moves_to_error_without_retry(ready_player, element):
    errors = []
    ready_player.on_error = errors.append
    ready_player.play()

    ready_player.handle_error("decode failed")

    assert ready_player.state is PlayerState.ERROR
    assert ready_player.error == "decode failed"
    assert errors == ["decode failed"]
    assert ready_player.play() is False
    assert ready_player.seek(10) == ready_player.current_time


def test_element_failures_surface_as_error_state():
    player = PlaybackController(FakeElement(fail_on="load"))
    player.load(_audio())
    assert player.state is PlayerState.ERROR

    player = PlaybackController(FakeElement(fail_on="play"))
    player.load(_audio())
    player.handle_loaded_metadata(10)
    assert player.play() is False
    assert player.state is PlayerState.ERROR
    assert player.error == "play failed"


def test_loading_new_source_recovers_from_error(ready_player):
    ready_player.handle_error("boom")
    ready_player.load(_audio())
    assert ready_player.state is PlayerState.LOADING
    assert ready_player.error is None


def test_download_from_blob_into_directory(ready_player, tmp_path):
    path = ready_player.download(tmp_path, now=datetime(2026, 10, 19, 12, 30, 45))

    assert path.name == "podcast_rachel_hello_world,_this_is_a_test._20261019T123045.mp3"
    assert path.read_bytes() == AUDIO


def test_download_decodes_data_url_when_blob_missing(tmp_path):
    player = PlaybackController()
    player.load(_audio(blob=None))

    path = player.download(tmp_path / "episode.mp3")

    assert path.name == "episode.mp3"
    assert path.read_bytes() == AUDIO


def test_download_fetches_remote_url(tmp_path):
    player = PlaybackController()
    player.load(_audio(blob=None, url="https://cdn.example/a.mp3"))

    with patch("audio_player.requests.get", return_value=http_response(content=AUDIO)) as get:
        path = player.download(tmp_path)

    get.assert_called_once()
    assert path.read_bytes() == AUDIO


def test_download_remote_failure_raises_media_error(tmp_path):
    player = PlaybackController()
    player.load(_audio(blob=None, url="https://cdn.example/a.mp3"))

    with patch("audio_player.requests.get", side_effect=requests.ConnectionError("down")):
        with pytest.raises(MediaError, match="Failed to fetch audio"):
            player.download(tmp_path)


def test_download_without_audio_raises(tmp_path):
    with pytest.raises(MediaError):
        PlaybackController().download(tmp_path)


def test_external_element_reports_missing_player(tmp_path):
    element = ExternalPlayerElement()
    element.load(AUDIO)
    try:
        with patch("audio_player.shutil.which", return_value=None):
            with pytest.raises(MediaError, match="No audio player found"):
                element.play(0.0)
    finally:
        element.close()


def test_external_element_builds_ffplay_command():
    element = ExternalPlayerElement()
    element.load(AUDIO)
    element.set_volume(0.5)
    try:
        with patch("audio_player.shutil.which", side_effect=lambda name: "/usr/bin/ffplay" if name == "ffplay" else None), patch(
            "audio_player.subprocess.Popen"
        ) as popen:
            element.play(12.0)
        command = popen.call_args.args[0]
        assert command[0] == "/usr/bin/ffplay"
        assert command[command.index("-ss") + 1] == "12.00"
        assert command[command.index("-volume") + 1] == "50"
    finally:
        element._process = None
        element.close()


def test_external_element_kills_player_that_ignores_terminate():
    element = ExternalPlayerElement()
    process = MagicMock()
    process.poll.return_value = None
    process.wait.side_effect = [subprocess.TimeoutExpired("ffplay", 5), 0]
    element._process = process

    element.pause()

    process.terminate.assert_called_once_with()
    process.kill.assert_called_once_with()
    assert element._process is None
    element.close()
