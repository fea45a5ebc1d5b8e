"""
Events consumed by the connection manager's dispatcher.

Every event that concerns a transport carries that transport's generation
number. The manager bumps the generation each time it opens a transport, so
late events from a retired transport are recognised and dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from ..schemas import Session
    from .protocols import TransportProtocol


@dataclass(frozen=True)
class ConnectRequested:
    pass


@dataclass(frozen=True)
class TransportOpened:
    generation: int
    transport: TransportProtocol


@dataclass(frozen=True)
class MessageReceived:
    generation: int
    raw: Union[str, bytes]


@dataclass(frozen=True)
class TransportErrored:
    generation: int
    error: Exception


@dataclass(frozen=True)
class TransportClosed:
    generation: int
    code: Union[int, None] = None
    reason: Union[str, None] = None


@dataclass(frozen=True)
class HandshakeResolved:
    generation: int
    result: asyncio.Future[Session]


@dataclass(frozen=True)
class ReconnectDue:
    pass


ConnectionEvent = Union[
    ConnectRequested,
    TransportOpened,
    MessageReceived,
    TransportErrored,
    TransportClosed,
    HandshakeResolved,
    ReconnectDue,
]
