"""Shared test fixtures for the vegaview test suite."""

import socket
import threading
import time
from urllib.parse import urlparse

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

import vegaview
from vegaview.config import ViewerConfig
from vegaview.viewer import Viewer


@pytest.fixture(autouse=True)
def _reset_default_viewer():
    """Stop and drop the module-level default viewer after every test."""
    yield
    with vegaview._lock:
        viewer, vegaview._viewer = vegaview._viewer, None
    if viewer is not None:
        viewer.stop_server()


def free_port() -> int:
    """Return a port nothing is listening on right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class FakeChannel:
    """In-memory channel that records what it was sent."""

    def __init__(self, channel_id: str = "fake", fail: bool = False):
        self.channel_id = channel_id
        self.sent: list[str] = []
        self.closed = False
        self.fail = fail

    @property
    def is_open(self) -> bool:
        return not self.closed

    def send(self, text: str) -> bool:
        if self.closed or self.fail:
            return False
        self.sent.append(text)
        return True

    def close(self) -> None:
        self.closed = True


class BrowserStub:
    """Stands in for the browser: connects to /ws and records every frame.

    Used as the viewer's opener, so each server start makes one new
    connection, just as opening the page would.
    """

    def __init__(self):
        self.urls: list[str] = []
        self.tabs: list[_Tab] = []

    def __call__(self, url: str) -> None:
        self.urls.append(url)
        port = urlparse(url).port
        tab = _Tab(f"ws://127.0.0.1:{port}/ws")
        self.tabs.append(tab)
        tab.start()

    @property
    def tab(self) -> "_Tab":
        return self.tabs[-1]

    def close_all(self) -> None:
        for tab in self.tabs:
            tab.close()


class _Tab:
    def __init__(self, uri: str):
        self.uri = uri
        self.messages: list[str] = []
        self.disconnected = threading.Event()
        self._ws = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        try:
            with connect(self.uri, open_timeout=5) as ws:
                self._ws = ws
                for message in ws:
                    self.messages.append(message)
        except (ConnectionClosed, OSError):
            pass
        finally:
            self.disconnected.set()

    def wait_for_messages(self, count: int, timeout: float = 5.0) -> list[str]:
        wait_until(lambda: len(self.messages) >= count, timeout)
        return list(self.messages)

    def close(self) -> None:
        if self._ws is not None:
            self._ws.close()
        self.disconnected.wait(timeout=5)


@pytest.fixture
def browser():
    stub = BrowserStub()
    yield stub
    stub.close_all()


@pytest.fixture
def viewer(browser):
    """A Viewer on a free port whose 'browser' is a BrowserStub."""
    config = ViewerConfig(port=free_port(), connect_timeout=5.0, send_timeout=2.0)
    v = Viewer(config, opener=browser)
    yield v
    v.stop_server()


@pytest.fixture
def make_channel():
    """Factory for FakeChannel instances."""
    return FakeChannel


@pytest.fixture
def get_free_port():
    return free_port
