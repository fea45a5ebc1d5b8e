"""
Authentication handshake component.

This module provides Authenticator, which sends the ``authenticate`` envelope
on a freshly opened transport and resolves a one-shot result with the
session, a timeout, or a protocol mismatch, whichever comes first.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Union

from ..config import DEFAULT_AUTH_TIMEOUT
from ..exceptions import (
    AuthenticationError,
    AuthProtocolMismatchError,
    AuthTimeoutError,
    EnvelopeDecodeError,
    FubInvalidStateError,
    TransportError,
)
from ..logger import get_logger
from ..schemas import AuthenticateMessage, Session, SessionStartMessage

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    from ..codec import MessageCodec
    from ..schemas import DeviceIdentity, Envelope

    SendFn = Callable[[Envelope, bool], Awaitable[bool]]

logger = get_logger(__name__)


class Authenticator:
    """
    Drives the one-shot ``authenticate`` -> ``session_start`` handshake.

    The outcome is a single asyncio.Future. Two producers race to complete
    it: the inbound-message handler and the timeout timer. The first one
    wins; the other finds the future done and does nothing. The timer is
    also cancelled as soon as the future settles.

    While the handshake is pending the owner must route every inbound message
    of the transport to :meth:`on_message`.

    Parameters
    ----------
    identity : DeviceIdentity
        Device presented to the bridge.
    send : Callable[[Envelope, bool], Awaitable[bool]]
        Gated send of the connection manager. Called once with
        ``override=True`` since the connection is not ready yet.
    codec : MessageCodec
        Used to parse the response.
    timeout : float, optional
        Seconds to wait for ``session_start`` (default 10.0).
    log : logging.Logger, optional
        Logger to use instead of the module logger.

    Usage
    -----
    ```python
    authenticator = Authenticator(identity, manager.send, codec)
    result = await authenticator.start()
    # ... feed inbound messages with authenticator.on_message(raw)
    session = await result
    ```
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        send: SendFn,
        codec: MessageCodec,
        timeout: float = DEFAULT_AUTH_TIMEOUT,
        log: Union[logging.Logger, Any, None] = None,
    ) -> None:
        self._identity = identity
        self._send = send
        self._codec = codec
        self._timeout = timeout
        self._log = log if log is not None else logger
        self._result: asyncio.Future[Session] | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def result(self) -> asyncio.Future[Session] | None:
        """The handshake outcome, or None before :meth:`start`."""
        return self._result

    @property
    def done(self) -> bool:
        return self._result is not None and self._result.done()

    async def start(self) -> asyncio.Future[Session]:
        """
        Arm the timeout and send the ``authenticate`` envelope.

        Returns
        -------
        asyncio.Future[Session]
            Resolves with the session, or fails with AuthTimeoutError,
            AuthProtocolMismatchError, or TransportError if the envelope
            could not be written.

        Raises
        ------
        FubInvalidStateError
            If the handshake was already started.
        """
        if self._result is not None:
            raise FubInvalidStateError("Handshake already started")

        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self._timer = loop.call_later(self._timeout, self._expire)

        self._log.debug("Sending auth packet")
        sent = await self._send(
            AuthenticateMessage(device_id=self._identity.device_id), True
        )
        if not sent:
            self._reject(TransportError("Could not send authenticate envelope"))
        return self._result

    async def authenticate(self) -> Session:
        """Start the handshake and wait for its outcome."""
        result = await self.start()
        return await result

    def on_message(self, raw: str | bytes) -> None:
        """
        Handle an inbound message while the handshake is pending.

        A well-formed ``session_start`` resolves the handshake; anything else,
        including an undecodable message, fails it with
        AuthProtocolMismatchError carrying the raw message.
        """
        if self._result is None or self._result.done():
            self._log.debug(f"Ignoring message after handshake resolution: {raw!r}")
            return

        self._log.debug(f"Got auth response: {raw!r}")
        try:
            envelope = self._codec.decode(raw)
        except EnvelopeDecodeError as e:
            self._log.warning(f"Undecodable auth response: {e}")
            self._reject(AuthProtocolMismatchError(raw))
            return

        if isinstance(envelope, SessionStartMessage):
            self._resolve(Session.from_message(envelope))
        else:
            self._reject(AuthProtocolMismatchError(raw))

    def cancel(self) -> None:
        """Abandon the handshake (transport gone or client closing)."""
        self._cancel_timer()
        if self._result is not None and not self._result.done():
            self._result.cancel()

    def _expire(self) -> None:
        self._timer = None
        if not self.done:
            self._reject(AuthTimeoutError(self._timeout))

    def _resolve(self, session: Session) -> None:
        self._cancel_timer()
        if self._result is not None and not self._result.done():
            self._result.set_result(session)

    def _reject(self, error: AuthenticationError | TransportError) -> None:
        self._cancel_timer()
        if self._result is not None and not self._result.done():
            self._result.set_exception(error)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
