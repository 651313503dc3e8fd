"""Shared fixtures: a throwaway store and a recording httpx transport."""

import httpx
import pytest

from postalbro.storage.store import Store


@pytest.fixture
def store(tmp_path):
    """Initialised store in a temporary directory."""
    s = Store(tmp_path / ".postalbro")
    s.initialize()
    return s


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it was asked to send."""

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if handler is not None:
                return handler(request)
            return httpx.Response(200, json={"ok": True})

        super().__init__(_record)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_transport():
    """Build a RecordingTransport around a custom handler."""
    return RecordingTransport
