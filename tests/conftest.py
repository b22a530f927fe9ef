"""
Shared fixtures: a fake transport that never touches the network.
"""

import asyncio
import threading
import time

import pytest

from pixcache import ImageCache, AsyncImageCache


def payload_for(url):
    return f"img:{url}".encode("utf-8")


class FakeTransport:
    """Counts calls, returns a payload per URL, ``None`` for URLs in ``failing``."""

    def __init__(self, failing=(), delay=0.0, delays=None):
        self.failing = set(failing)
        self.delay = delay
        self.delays = delays or {}
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    @property
    def call_count(self):
        return len(self.calls)

    def fetch_bytes(self, locator):
        with self._lock:
            self.calls.append(locator)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            pause = self.delays.get(locator, self.delay)
            if pause:
                time.sleep(pause)
            if locator in self.failing:
                return None
            return payload_for(locator)
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self):
        pass


class AsyncFakeTransport:
    def __init__(self, failing=(), delay=0.0):
        self.failing = set(failing)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_bytes(self, locator):
        self.calls.append(locator)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if locator in self.failing:
                return None
            return payload_for(locator)
        finally:
            self.in_flight -= 1

    async def close(self):
        pass


def urls(n, prefix="https://img.example.com/p"):
    return [f"{prefix}/{i}.jpg" for i in range(n)]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def cache(tmp_path, transport):
    c = ImageCache(primary_dir=tmp_path / "caches", secondary_dir=tmp_path / "documents",
                   transport=transport)
    yield c
    c.shutdown()


@pytest.fixture
def async_transport():
    return AsyncFakeTransport()


@pytest.fixture
def async_cache(tmp_path, async_transport):
    return AsyncImageCache(primary_dir=tmp_path / "caches", secondary_dir=tmp_path / "documents",
                           transport=async_transport)
