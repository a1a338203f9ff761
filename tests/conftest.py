"""Shared test fixtures."""

from __future__ import annotations

import asyncio

import pytest

from adx_batch.models import EventEnvelope, ManifestDescriptor, TaskOptions


def manifest(path: str, source: str = "builtin") -> ManifestDescriptor:
    return ManifestDescriptor(
        id=f"{source}:{path}",
        name=path.upper(),
        path=path,
        relative_path=f"{path}/manifest.json",
        level_count=10,
        source=source,
    )


class FakeSubscription:
    def __init__(self, engine: FakeEngine, handler, on_error) -> None:
        self.engine = engine
        self.handler = handler
        self.on_error = on_error
        self.closed = False

    async def close(self) -> None:
        if self.engine.close_delay:
            await asyncio.sleep(self.engine.close_delay)
        self.closed = True


class FakeEngine:
    """In-memory engine; poll results are served from `states` in order."""

    def __init__(self, catalog=None) -> None:
        self.catalog = [manifest(p) if isinstance(p, str) else p for p in catalog or []]
        self.list_error: Exception | None = None
        self.refresh_error: Exception | None = None
        self.refreshed: list[str] = []

        self.start_results: list[str] = ["t1"]
        self.start_error: Exception | None = None
        self.start_gate: asyncio.Event | None = None
        self.start_requests = []

        self.cancel_error: Exception | None = None
        self.cancel_calls: list[str] = []

        self.states: list = []
        self.fetch_calls: list[str] = []
        self.fetch_gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0

        self.subscriptions: list[FakeSubscription] = []
        self.close_delay = 0.0

    async def __aenter__(self) -> FakeEngine:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    async def list_catalog(self):
        await asyncio.sleep(0)
        if self.list_error:
            raise self.list_error
        return list(self.catalog)

    async def refresh_catalog(self, directory: str) -> None:
        if self.refresh_error:
            raise self.refresh_error
        self.refreshed.append(directory)

    async def start_task(self, request) -> str:
        self.start_requests.append(request)
        if self.start_gate:
            await self.start_gate.wait()
        if self.start_error:
            raise self.start_error
        return self.start_results.pop(0)

    async def cancel_task(self, task_id: str) -> None:
        if self.cancel_error:
            raise self.cancel_error
        self.cancel_calls.append(task_id)

    async def fetch_task_state(self, task_id: str):
        self.fetch_calls.append(task_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.fetch_gate:
                await self.fetch_gate.wait()
            item = self.states.pop(0) if self.states else None
        finally:
            self.in_flight -= 1
        if isinstance(item, Exception):
            raise item
        return item

    async def subscribe(self, handler, on_error=None) -> FakeSubscription:
        subscription = FakeSubscription(self, handler, on_error)
        self.subscriptions.append(subscription)
        return subscription

    def emit(self, task_id: str, message: str, status: str | None = None) -> None:
        envelope = EventEnvelope(
            task_id=task_id, level="info", event="log", message=message, status=status
        )
        for subscription in self.subscriptions:
            if not subscription.closed:
                subscription.handler(envelope)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition was not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture()
def fake_engine() -> FakeEngine:
    return FakeEngine(catalog=["a", "b", "c"])


@pytest.fixture()
def wait_for():
    return _wait_for


@pytest.fixture()
def task_options() -> TaskOptions:
    return TaskOptions(
        output_dir="/tmp/out",
        connect_sid="sid-123",
        auth_mode="key",
        key="secret-key",
    )


@pytest.fixture()
def make_manifest():
    return manifest
