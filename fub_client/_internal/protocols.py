"""
Protocol definitions for the transport seam.

These protocols let the connection manager depend on an abstract message
socket rather than on the websockets library, so tests and embedders can
inject their own transport.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from typing_extensions import TypeAlias


@runtime_checkable
class TransportProtocol(Protocol):
    """
    Protocol for an open, bidirectional, message-oriented socket.

    A transport instance represents one connection. Once closed it is never
    reused; the connection manager asks the factory for a fresh one.

    Implementations translate their library's failures into
    ``TransportClosedError`` (connection gone) and ``TransportError``
    (anything else).

    See Also
    --------
    SimpleTransport : Abstract base class that implements this protocol.
    WebSocketTransport : Implementation on top of the websockets library.
    """

    async def send(self, message: str) -> None:
        """
        Write one text message.

        Raises
        ------
        TransportClosedError
            If the transport is closed.
        TransportError
            On any other I/O failure.
        """
        ...

    async def recv(self) -> str | bytes:
        """
        Wait for the next inbound message.

        Raises
        ------
        TransportClosedError
            When the connection closes, cleanly or not.
        TransportError
            On any other I/O failure.
        """
        ...

    async def close(self, code: int = 1000) -> None:
        """Close the connection. Safe to call more than once."""
        ...

    @property
    def closed(self) -> bool:
        """True once the connection is closed."""
        ...


# Opens a new transport to the given server address.
# Raises TransportError (or TransportClosedError) when the open fails.
TransportFactory: TypeAlias = "Callable[[str], Awaitable[TransportProtocol]]"
