#!/usr/bin/env python3
"""
Podcast Hub CLI

- Lists the voices the backend exposes (with a category filter) and plays previews
- Generates a podcast from text with a chosen voice and tuning settings
- Optionally downloads the returned audio and plays it (ffplay / afplay)
- Interactive menu to pick a voice and enter text

Environment
  PODCAST_API_BASE (default http://127.0.0.1:7860/api)
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from audio_player import DOWNLOAD_TIMEOUT_SECONDS, ExternalPlayerElement, PlaybackController
from podcast_errors import MediaError, PodcastError
from podcast_generator import DEFAULT_API_BASE, PodcastAudio, PodcastGenerator
from podcast_models import Voice
from podcast_utils import MAX_TEXT_LENGTH, check_text, format_duration, format_file_size

API_BASE = os.environ.get("PODCAST_API_BASE", DEFAULT_API_BASE).rstrip("/")


def _generator(player: Optional[PlaybackController] = None) -> PodcastGenerator:
    return PodcastGenerator(API_BASE, player=player)


def _settings_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    settings: Dict[str, Any] = {}
    for key in ("stability", "similarity_boost", "style", "speed"):
        value = getattr(args, key, None)
        if value is not None:
            settings[key] = value
    if getattr(args, "speaker_boost", False):
        settings["use_speaker_boost"] = True
    return settings


def _describe(audio: PodcastAudio) -> List[str]:
    meta = audio.metadata
    lines = [
        f"Voice:    {audio.voice.name} ({audio.voice.voice_id})",
        f"Format:   {meta.format.upper()}",
        f"Duration: {format_duration(meta.duration)}",
        f"Size:     {format_file_size(len(audio.blob or b''))}",
    ]
    if meta.sample_rate:
        lines.append(f"Sample rate: {meta.sample_rate} Hz")
    if meta.channels:
        lines.append(f"Channels: {meta.channels}")
    return lines


def play_through(player: PlaybackController, element: ExternalPlayerElement) -> None:
    if not player.play():
        print(f"Cannot play audio ({player.state.value}).")
        return
    if element.wait():
        player.handle_ended()
    else:
        player.handle_error("Audio player exited with an error")


def run_generation(
    text: str,
    voice: Voice,
    settings: Dict[str, Any],
    *,
    download: Optional[str] = None,
    play: bool = False,
) -> PodcastAudio:
    element = ExternalPlayerElement() if play else None
    player = PlaybackController(element)
    try:
        audio = _generator(player).generate(text, voice, settings)
        for line in _describe(audio):
            print(line)
        if download:
            saved = player.download(download)
            print(f"Saved: {saved}")
        if element is not None:
            play_through(player, element)
        return audio
    finally:
        player.close()


def play_preview(voice: Voice, element: Optional[ExternalPlayerElement] = None) -> None:
    if not voice.preview_url:
        raise MediaError(f"Voice {voice.voice_id} has no preview.")
    try:
        resp = requests.get(voice.preview_url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise MediaError(f"Failed to fetch preview for {voice.name}: {exc}") from exc
    element = element or ExternalPlayerElement()
    try:
        element.load(resp.content)
        print(f"Playing preview: {voice.name}")
        element.play(0.0)
        element.wait()
    finally:
        element.close()


def cmd_voices(args: argparse.Namespace) -> None:
    voices = _generator().fetch_voices()
    if getattr(args, "preview", None):
        match = next((v for v in voices if v.voice_id == args.preview), None)
        if match is None:
            raise SystemExit(f"Unknown voice: {args.preview}")
        play_preview(match)
        return
    if args.category:
        voices = [v for v in voices if v.category == args.category]
    if args.json:
        print(json.dumps({"voices": [v.to_dict() for v in voices]}, indent=2))
        return
    if not voices:
        print("No voices found.")
        return
    for i, v in enumerate(voices, start=1):
        desc = f"  {v.description}" if v.description else ""
        print(f"{i:2d}. {v.name}  [{v.category} · {v.voice_id}]{desc}")


def cmd_generate(args: argparse.Namespace) -> None:
    text = args.text or sys.stdin.read().strip()
    ok, error = check_text(text)
    if not ok:
        raise SystemExit(error)
    run_generation(
        text,
        Voice.unknown(args.voice),
        _settings_from_args(args),
        download=args.download,
        play=args.play,
    )


def _input(prompt: str) -> str:
    try:
        return input(prompt)
    except EOFError:
        return ""


def _menu_choose() -> None:
    voices = _generator().fetch_voices()
    if not voices:
        print("No voices available.")
        return
    for i, v in enumerate(voices, start=1):
        print(f"{i:2d}. {v.name}  [{v.category}]")
    try:
        idx = int(_input("Select voice #: ").strip())
    except ValueError:
        print("Cancelled.")
        return
    if not (1 <= idx <= len(voices)):
        print("Out of range.")
        return
    voice = voices[idx - 1]
    text = _input(f"Enter podcast text (10-{MAX_TEXT_LENGTH} chars): ").strip()
    ok, error = check_text(text)
    if not ok:
        print(error)
        return
    target = _input("Save to (folder/ or path, blank to skip): ").strip() or None
    play = _input("Play now? [y/N]: ").strip().lower() == "y"
    run_generation(text, voice, {}, download=target, play=play)


def _menu_settings() -> None:
    global API_BASE
    print(f"API base: {API_BASE}")
    new_base = _input("New API base (blank to keep): ").strip()
    if new_base:
        API_BASE = new_base.rstrip("/")
    print("Settings updated.")


def cmd_menu(args: argparse.Namespace) -> None:
    while True:
        print("\nPodcast Hub - Menu")
        print("  1. List voices")
        print("  2. Choose voice and generate")
        print("  3. Settings (API base)")
        print("  0. Exit")
        choice = _input("Select: ").strip()
        if choice in {"", "0"}:
            return
        try:
            if choice == "1":
                cmd_voices(argparse.Namespace(category=None, json=False, preview=None))
            elif choice == "2":
                _menu_choose()
            elif choice == "3":
                _menu_settings()
            else:
                print("Unknown choice.")
        except PodcastError as exc:
            print(f"Error: {exc}")


def main(argv: Optional[List[str]] = None) -> None:
    global API_BASE
    load_dotenv(".env", override=False)
    API_BASE = os.environ.get("PODCAST_API_BASE", API_BASE).rstrip("/")
    p = argparse.ArgumentParser(description="Podcast Hub CLI")
    sub = p.add_subparsers(dest="cmd", required=False)

    p_voices = sub.add_parser("voices", help="List available voices")
    p_voices.add_argument("--category", help="Filter by voice category", default=None)
    p_voices.add_argument("--json", action="store_true", help="Print raw JSON")
    p_voices.add_argument("--preview", metavar="VOICE_ID", help="Play the voice preview sample")
    p_voices.set_defaults(func=cmd_voices)

    p_gen = sub.add_parser("generate", help="Generate a podcast from text")
    p_gen.add_argument("--voice", required=True, help="Voice id")
    p_gen.add_argument("--text", help="Text to speak (or pipe on stdin)")
    p_gen.add_argument("--stability", type=float, default=None)
    p_gen.add_argument("--similarity-boost", dest="similarity_boost", type=float, default=None)
    p_gen.add_argument("--style", type=float, default=None)
    p_gen.add_argument("--speed", type=float, default=None)
    p_gen.add_argument("--speaker-boost", dest="speaker_boost", action="store_true")
    p_gen.add_argument("--download", help="Save audio to path (or folder/)")
    p_gen.add_argument("--play", action="store_true", help="Play audio after generation")
    p_gen.set_defaults(func=cmd_generate)

    p_menu = sub.add_parser("menu", help="Interactive menu mode")
    p_menu.set_defaults(func=cmd_menu)

    args = p.parse_args(argv)
    if not getattr(args, "cmd", None):
        return cmd_menu(argparse.Namespace())
    try:
        args.func(args)
    except PodcastError as exc:
        raise SystemExit(f"Error: {exc}")


if __name__ == "__main__":
    main()
