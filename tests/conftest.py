"""Shared test doubles."""

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from uptimecron.probe import HttpResponse, TransportError

START = datetime(2024, 5, 18, 7, 4, 5, tzinfo=UTC)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **kwargs: float) -> None:
        with self._lock:
            self._now += timedelta(**kwargs)


class RecordingSleep:
    """Sleep replacement that records requested waits instead of blocking."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class MemoryStore:
    """In-process state store."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(data or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self.data[key] = value

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self.data if key.startswith(prefix))


def scripted_fetch(script: dict[str, list[int | Exception]]) -> Callable[[str], HttpResponse]:
    """Build a fetch that replays per-URL responses; the last entry repeats.

    Integers become status codes, exceptions are raised.
    """
    lock = threading.Lock()
    calls: dict[str, int] = {}

    def fetch(url: str) -> HttpResponse:
        with lock:
            index = calls.get(url, 0)
            calls[url] = index + 1
        steps = script[url]
        step = steps[min(index, len(steps) - 1)]
        if isinstance(step, Exception):
            raise step
        return HttpResponse(status=step)

    fetch.calls = calls  # type: ignore[attr-defined]
    return fetch


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def refused() -> TransportError:
    return TransportError("[Errno 111] Connection refused")
