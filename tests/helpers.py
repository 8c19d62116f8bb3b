from __future__ import annotations

import io
import json
import threading
from typing import Callable

import httpx
from PIL import Image


class SleepRecorder:
    """Drop-in for time.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"content-type": "application/json"},
    )


def jpeg_bytes(size: tuple[int, int] = (120, 80), color=(30, 120, 200)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class BlockingRunner:
    """Job runner stand-in that holds its job lock until released."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls: list[str] = []

    def __call__(self, ctx, name, **options) -> None:
        self.calls.append(name)
        self.started.set()
        self.release.wait(5)
