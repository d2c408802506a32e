"""
Global pytest configuration and fixtures for the console tests.

This module provides:
- Settings tuned for fast timers
- A recording sink that captures every console callback
- An in-memory push channel standing in for a websocket connection
- An httpx MockTransport-backed API client
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio

from dashboard.config import Settings
from dashboard.connectors.benchmark_api import BenchmarkApiClient
from dashboard.core.sinks import DashboardSink


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with timers short enough for unit tests."""
    return Settings(
        BASE_URL="http://bench.test",
        POLL_INTERVAL_SECONDS=0.01,
        RECONNECT_DELAY_SECONDS=0.02,
        PROGRESS_GRACE_SECONDS=0.02,
    )


# =============================================================================
# Recording sink
# =============================================================================


@dataclass
class RecordingSink(DashboardSink):
    """Captures sink callbacks as (callback, args) tuples."""

    calls: list[tuple[str, tuple]] = field(default_factory=list)

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def of(self, name: str) -> list[tuple]:
        return [args for cb, args in self.calls if cb == name]

    def on_series_updated(self, series, points) -> None:
        self._record("on_series_updated", series, tuple(points))

    def on_status_changed(self, status, flags) -> None:
        self._record("on_status_changed", status, flags)

    def on_log_appended(self, entry) -> None:
        self._record("on_log_appended", entry)

    def on_log_history_replaced(self, entries) -> None:
        self._record("on_log_history_replaced", tuple(entries))

    def on_progress(self, progress) -> None:
        self._record("on_progress", progress)

    def on_connection_changed(self, state) -> None:
        self._record("on_connection_changed", state)

    def on_notification(self, level, title, message) -> None:
        self._record("on_notification", level, title, message)

    def on_transaction_totals(self, tx) -> None:
        self._record("on_transaction_totals", tx)

    def on_transaction_table(self, rows) -> None:
        self._record("on_transaction_table", tuple(rows))

    def on_host_metrics(self, host) -> None:
        self._record("on_host_metrics", host)

    def on_database_metrics(self, db) -> None:
        self._record("on_database_metrics", db)

    def on_config(self, config) -> None:
        self._record("on_config", config)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


# =============================================================================
# In-memory push channel
# =============================================================================

CLOSE = object()


class FakeChannel:
    """Async-iterable stand-in for a websocket connection."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()

    def send_json(self, payload: dict) -> None:
        self.queue.put_nowait(json.dumps(payload))

    def send_raw(self, raw: Any) -> None:
        self.queue.put_nowait(raw)

    def close(self) -> None:
        self.queue.put_nowait(CLOSE)

    def fail(self, exc: BaseException) -> None:
        self.queue.put_nowait(exc)

    def __aiter__(self) -> "FakeChannel":
        return self

    async def __anext__(self) -> Any:
        item = await self.queue.get()
        if item is CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """
    ``websockets.connect`` replacement.

    Each connect attempt pops the next channel (or exception) from the plan;
    once the plan is exhausted every attempt is refused.
    """

    def __init__(self, *plan: FakeChannel | BaseException) -> None:
        self.plan: list[FakeChannel | BaseException] = list(plan)
        self.attempts: list[str] = []
        self.connected = asyncio.Event()

    def __call__(self, url: str):
        self.attempts.append(url)
        step = self.plan.pop(0) if self.plan else ConnectionRefusedError("refused")
        return self._session(step)

    @asynccontextmanager
    async def _session(self, step: FakeChannel | BaseException):
        if isinstance(step, BaseException):
            raise step
        self.connected.set()
        yield step


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


# =============================================================================
# Mocked REST API
# =============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


class MockBackend:
    """Route table for httpx.MockTransport keyed by (method, path)."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler | Any] = {}
        self.requests: list[httpx.Request] = []

    def set(self, method: str, path: str, response: Handler | Any) -> None:
        self.routes[(method.upper(), path)] = response

    def count(self, method: str, path: str) -> int:
        return sum(
            1
            for r in self.requests
            if r.method == method.upper() and r.url.path == path
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)


@pytest.fixture
def backend() -> MockBackend:
    mock = MockBackend()
    mock.set("GET", "/api/benchmark/config", {"database": {"type": "mysql"}})
    mock.set("GET", "/api/metrics/current", {"status": "IDLE"})
    mock.set("GET", "/api/benchmark/logs", [])
    mock.set("GET", "/api/metrics/history", [])
    return mock


@pytest_asyncio.fixture
async def api(backend: MockBackend):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(backend), base_url="http://bench.test"
    )
    async with BenchmarkApiClient("http://bench.test", client=client) as api_client:
        yield api_client
    await client.aclose()


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll ``predicate`` until true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: marks tests that open a real websocket server",
    )
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
