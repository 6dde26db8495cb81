"""Shared fakes for the transport and the video socket."""

from __future__ import annotations

import collections

import pytest
import websocket


class FakeResponse:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code


class FakeTransport:
    """Records every call the session manager makes on the robot API."""

    def __init__(self, accept: bool = True, stop_error: Exception | None = None) -> None:
        self.accept = accept
        self.stop_error = stop_error
        self.start_calls = []
        self.stop_calls = 0
        self.restart_calls = 0

    def start_video_stream(self, config) -> bool:
        self.start_calls.append(config.to_payload())
        return self.accept

    def stop_video_stream(self):
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        return FakeResponse()

    def restart(self):
        self.restart_calls += 1
        return FakeResponse()

    def websocket_url(self, port: int) -> str:
        return f"ws://robot:{port}"


class FakeConnection:
    """Replays scripted recv() results: bytes, '' for a close frame, or an exception."""

    def __init__(self, script=()) -> None:
        self.script = collections.deque(script)
        self.close_calls = 0
        self.timeout = "unset"

    def recv(self):
        if self.close_calls:
            raise websocket.WebSocketConnectionClosedException("socket is already closed.")
        if not self.script:
            return ""
        item = self.script.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def settimeout(self, timeout) -> None:
        self.timeout = timeout

    def close(self) -> None:
        self.close_calls += 1


class FakeConnector:
    def __init__(self, connection: FakeConnection | None = None, error: Exception | None = None) -> None:
        self.connection = connection or FakeConnection()
        self.error = error
        self.urls = []

    def __call__(self, url, timeout=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.connection


class RecordingSink:
    def __init__(self) -> None:
        self.commands = []

    def send(self, command) -> None:
        self.commands.append(command)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
