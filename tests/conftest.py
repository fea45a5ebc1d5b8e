"""
Pytest configuration and shared fixtures for fub_client tests.

This module provides:
- Custom pytest markers for test categorization
- An in-memory transport and transport factory standing in for the websocket
- A polling helper for waiting on lifecycle conditions
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from fub_client.config import AuthConfig, FubClientConfig, ReconnectConfig
from fub_client.exceptions import TransportClosedError, TransportError
from fub_client.transport import SimpleTransport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


def pytest_configure(config: pytest.Config) -> None:
    """
    Register custom pytest markers.

    This function is called during pytest initialization to register
    custom markers that can be used to categorize and filter tests.
    """
    config.addinivalue_line(
        "markers",
        "lifecycle: mark test as exercising the full connect/reconnect lifecycle",
    )


# ============================================================================
# Fake transport
# ============================================================================


class FakeTransport(SimpleTransport):
    """In-memory transport: records writes, replays scripted inbound traffic."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.close_codes: list[int] = []
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: str) -> None:
        if self._closed:
            raise TransportClosedError(1006, "transport already closed")
        self.sent.append(message)

    async def recv(self) -> str | bytes:
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000) -> None:
        self.close_codes.append(code)
        if not self._closed:
            self._closed = True
            self._inbox.put_nowait(TransportClosedError(code, "closed locally"))

    # Test controls

    def feed(self, envelope: dict[str, Any]) -> None:
        self._inbox.put_nowait(json.dumps(envelope))

    def feed_raw(self, raw: str | bytes) -> None:
        self._inbox.put_nowait(raw)

    def drop(self, code: int = 1006, reason: str = "connection lost") -> None:
        """Simulate the remote side closing the connection."""
        self._closed = True
        self._inbox.put_nowait(TransportClosedError(code, reason))

    def fail(self, message: str = "connection reset") -> None:
        """Simulate an I/O error on the connection."""
        self._closed = True
        self._inbox.put_nowait(TransportError(message))

    def sent_envelopes(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]


class FakeTransportFactory:
    """Transport factory handing out FakeTransports, with scripted failures."""

    def __init__(self) -> None:
        self.calls = 0
        self.uris: list[str] = []
        self.transports: list[FakeTransport] = []
        # When set, opens block until the event is set
        self.gate: asyncio.Event | None = None
        self._failures = 0

    def fail_next(self, count: int = 1) -> None:
        self._failures += count

    @property
    def latest(self) -> FakeTransport | None:
        return self.transports[-1] if self.transports else None

    async def __call__(self, uri: str) -> FakeTransport:
        self.calls += 1
        self.uris.append(uri)
        if self.gate is not None:
            await self.gate.wait()
        if self._failures > 0:
            self._failures -= 1
            raise TransportError("connection refused")
        transport = FakeTransport()
        self.transports.append(transport)
        return transport


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    """Create a factory of in-memory transports."""
    return FakeTransportFactory()


@pytest.fixture
def fast_config() -> FubClientConfig:
    """Configuration with short handshake timeout and millisecond backoff."""
    return FubClientConfig(
        reconnect=ReconnectConfig(backoff_step=0.005, max_backoff=0.05),
        auth=AuthConfig(timeout=0.2),
    )


async def _wait_until(
    predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005
) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll a predicate until it holds, failing the test after a timeout."""
    return _wait_until
