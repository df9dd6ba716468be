from __future__ import annotations

import io
import json
import wave
from typing import Any, Dict, List, Optional, Tuple

import requests


def http_response(
    status: int = 200,
    *,
    json_body: Any = None,
    content: bytes = b"",
    reason: str = "OK",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
        response.encoding = "utf-8"
    else:
        response._content = content
    return response


class FakeSession:
    """Stand-in for ``requests.Session`` that answers by method and URL suffix."""

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.routes = dict(routes or {})
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        for (route_method, suffix), result in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(result, Exception):
                    raise result
                return result
        raise AssertionError(f"Unexpected request {method} {url}")

    def calls_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["url"].endswith(suffix)]


def make_wav(seconds: float = 0.5, rate: int = 8000) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x00\x00" * int(seconds * rate))
    return buf.getvalue()


RAW_VOICES = {
    "voices": [
        {
            "voice_id": "abc123",
            "name": "Rachel",
            "category": "premade",
            "description": "Calm narration",
            "preview_url": "https://example.com/rachel.mp3",
            "labels": {"accent": "american"},
            "settings": {"stability": 0.7, "similarity_boost": 0.8},
        },
        {"voice_id": "xyz789", "name": "Custom"},
    ]
}
