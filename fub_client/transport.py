"""
Transport implementations: a minimal message-socket interface and its
websocket implementation.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Union

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException
from websockets.protocol import State

from .config import WebSocketConnectionConfig
from .exceptions import TransportClosedError, TransportError
from .logger import get_logger

if TYPE_CHECKING:
    import logging

logger = get_logger(__name__)

# WebSocket close codes (RFC 6455 Section 7.4)
WS_CLOSE_CODE_NORMAL = 1000  # Normal closure
WS_CLOSE_CODE_SERVICE_RESTART = 1012  # Server restarting (reconnection encouraged)


class SimpleTransport(ABC):
    """
    Abstract base class for transport implementations.

    Subclasses must implement send(), recv() and close(). The closed
    property has a default implementation but can be overridden.

    See Also
    --------
    WebSocketTransport : Concrete implementation for the websockets library.
    """

    @property
    def closed(self) -> bool:
        return False

    @abstractmethod
    async def send(self, message: str) -> None:
        """Write one text message."""
        ...

    @abstractmethod
    async def recv(self) -> str | bytes:
        """Wait for the next inbound message."""
        ...

    @abstractmethod
    async def close(self, code: int = WS_CLOSE_CODE_NORMAL) -> None:
        """Close the connection."""
        ...


def _closed_error(error: ConnectionClosed) -> TransportClosedError:
    close_info = getattr(error, "rcvd", None)
    code = getattr(close_info, "code", None)
    reason = getattr(close_info, "reason", None)
    return TransportClosedError(code, reason)


class WebSocketTransport(SimpleTransport):
    """
    Transport over a connection from the websockets library.

    Translates websockets exceptions into :class:`TransportClosedError` and
    :class:`TransportError` so nothing above this layer depends on the
    library.

    Parameters
    ----------
    websocket : Any
        An open websockets client connection.
    log : logging.Logger, optional
        Logger to use instead of the module logger.
    """

    def __init__(
        self, websocket: Any, log: Union[logging.Logger, Any, None] = None
    ) -> None:
        self._websocket = websocket
        self._log = log if log is not None else logger
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed or getattr(self._websocket, "state", None) is State.CLOSED

    async def send(self, message: str) -> None:
        try:
            await self._websocket.send(message)
        except ConnectionClosed as e:
            raise _closed_error(e) from e
        except (WebSocketException, OSError) as e:
            raise TransportError(f"Send failed: {type(e).__name__}: {e}") from e

    async def recv(self) -> str | bytes:
        try:
            return await self._websocket.recv()
        except ConnectionClosed as e:
            error = _closed_error(e)
            if error.code == WS_CLOSE_CODE_SERVICE_RESTART:
                self._log.info(
                    f"Server restart detected (close code "
                    f"{WS_CLOSE_CODE_SERVICE_RESTART}: "
                    f"{error.reason or 'Service Restart'})."
                )
            raise error from e
        except (WebSocketException, OSError) as e:
            raise TransportError(f"Receive failed: {type(e).__name__}: {e}") from e

    async def close(self, code: int = WS_CLOSE_CODE_NORMAL) -> None:
        if self._closed:
            return
        self._closed = True
        # The connection may already be broken
        with suppress(WebSocketException, OSError):
            await self._websocket.close(code)


class WebSocketTransportFactory:
    """
    Opens :class:`WebSocketTransport` instances with ``websockets.connect``.

    Parameters
    ----------
    config : WebSocketConnectionConfig | None, optional
        Transport settings; defaults to WebSocketConnectionConfig().
    extra_kwargs : dict[str, Any] | None, optional
        Extra keyword arguments for ``websockets.connect()``; they override
        values derived from ``config``.
    log : logging.Logger, optional
        Logger for this factory and the transports it opens.

    Examples
    --------
    >>> factory = WebSocketTransportFactory(WebSocketConnectionConfig(ping_interval=None))
    >>> transport = await factory("ws://localhost:8080")
    """

    def __init__(
        self,
        config: WebSocketConnectionConfig | None = None,
        extra_kwargs: dict[str, Any] | None = None,
        log: Union[logging.Logger, Any, None] = None,
    ) -> None:
        self.config = config or WebSocketConnectionConfig()
        self.log = log if log is not None else logger
        self.config.validate()
        self.connect_kwargs = self.config.connect_kwargs()
        self.connect_kwargs.update(extra_kwargs or {})

    async def __call__(self, uri: str) -> WebSocketTransport:
        """
        Open a new websocket connection.

        Raises
        ------
        TransportError
            If the connection cannot be established.
        """
        self.log.debug(f"Creating WebSocket connection to {uri}: {self.connect_kwargs}")
        try:
            raw_ws = await websockets.connect(uri, **self.connect_kwargs)
        except InvalidStatus as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            raise TransportError(
                f"WebSocket handshake rejected with status {status_code}"
            ) from e
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Connection to {uri} failed: {type(e).__name__}: {e}"
            ) from e
        return WebSocketTransport(raw_ws, log=self.log)
