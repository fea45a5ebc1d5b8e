"""
Connection lifecycle for the FUB client: open the transport, authenticate,
gate outbound sends on readiness, and reconnect with backoff on failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any

from ._internal.authenticator import Authenticator
from ._internal.backoff import BackoffPolicy
from ._internal.events import (
    ConnectionEvent,
    ConnectRequested,
    HandshakeResolved,
    MessageReceived,
    ReconnectDue,
    TransportClosed,
    TransportErrored,
    TransportOpened,
)
from .codec import MessageCodec
from .config import FubClientConfig
from .exceptions import EnvelopeDecodeError, TransportClosedError, TransportError
from .logger import get_logger
from .transport import WebSocketTransportFactory

if TYPE_CHECKING:
    import logging

    from typing_extensions import TypeAlias

    from ._internal.protocols import TransportFactory, TransportProtocol
    from .schemas import DeviceIdentity, Envelope, Session

OnConnectCallback: TypeAlias = Callable[["Session"], Awaitable[None]]
OnDisconnectCallback: TypeAlias = Callable[[], Awaitable[None]]
OnMessageCallback: TypeAlias = Callable[["Envelope"], Awaitable[None]]

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle state of a :class:`ConnectionManager`. Exactly one is active."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    READY = "ready"


class ConnectionManager:
    """
    Keeps one authenticated transport to the bridge alive.

    The manager is a finite-state object driven by an internal event queue.
    Transport activity (open, message, error, close), the handshake outcome
    and the backoff timer are all turned into events and processed one at a
    time by a single dispatcher task, so every state change happens inside
    one handler that runs to completion before the next event is taken.

    State machine::

        DISCONNECTED   --connect()-------------------> CONNECTING
        CONNECTING     --transport opened------------> AUTHENTICATING
        AUTHENTICATING --session_start---------------> READY
        AUTHENTICATING --timeout / mismatch----------> DISCONNECTED (+reconnect)
        any            --transport closed------------> DISCONNECTED (+reconnect)

    Reconnect attempt ``k`` waits ``BackoffPolicy(k)``; ``k`` starts at 1 and
    goes back to 1 whenever a transport opens. Reconnects continue forever
    unless ``ReconnectConfig.max_reconnect_attempts`` is set.

    Nothing in the public API raises because of connection problems:
    ``connect()`` only starts the process and ``send()`` drops envelopes
    (returning False) while the connection is not ready.

    Parameters
    ----------
    server_address : str
        Bridge address, e.g. ``ws://bridge.local:8080``.
    identity : DeviceIdentity
        Device presented during authentication.
    config : FubClientConfig | None, optional
        Tunables; defaults to FubClientConfig().
    transport_factory : TransportFactory | None, optional
        Coroutine function opening a transport for an address. Defaults to a
        WebSocketTransportFactory built from ``config``.
    codec : MessageCodec | None, optional
        Envelope codec; defaults to one limited to the configured message size.
    backoff : Callable[[int], float] | None, optional
        Reconnect delay per attempt; defaults to BackoffPolicy from ``config``.
    log : logging.Logger | None, optional
        Logger for lifecycle diagnostics; defaults to the module logger.
    on_connect : list[OnConnectCallback] | None, optional
        Awaited with the session each time the connection becomes ready.
    on_disconnect : list[OnDisconnectCallback] | None, optional
        Awaited each time a ready connection is lost.
    on_message : list[OnMessageCallback] | None, optional
        Awaited with every envelope received while ready.
    """

    def __init__(
        self,
        server_address: str,
        identity: DeviceIdentity,
        *,
        config: FubClientConfig | None = None,
        transport_factory: TransportFactory | None = None,
        codec: MessageCodec | None = None,
        backoff: Callable[[int], float] | None = None,
        log: logging.Logger | Any | None = None,
        on_connect: list[OnConnectCallback] | None = None,
        on_disconnect: list[OnDisconnectCallback] | None = None,
        on_message: list[OnMessageCallback] | None = None,
    ) -> None:
        self.server_address = server_address
        self.identity = identity

        self.config = config or FubClientConfig()
        self.config.validate()

        self._log = log if log is not None else logger
        self._codec = codec or MessageCodec(
            self.config.websocket.max_message_size, log=self._log
        )
        self._transport_factory = transport_factory or WebSocketTransportFactory(
            self.config.websocket, self.config.websocket_kwargs, log=self._log
        )
        self._backoff = backoff or BackoffPolicy.from_config(self.config.reconnect)
        self._max_reconnect_attempts = self.config.reconnect.max_reconnect_attempts

        self._on_connect: list[OnConnectCallback] = on_connect or []
        self._on_disconnect: list[OnDisconnectCallback] = on_disconnect or []
        self._on_message: list[OnMessageCallback] = on_message or []

        # Lifecycle state, mutated only by the dispatcher (and close())
        self._state = ConnectionState.DISCONNECTED
        self._session: Session | None = None
        self._attempt = 1
        # Bumped whenever a transport is opened or retired; stale events are dropped
        self._generation = 0
        self._transport: TransportProtocol | None = None
        self._authenticator: Authenticator | None = None
        self._ready = asyncio.Event()

        # Event queue and the tasks/timers feeding it
        self._events: asyncio.Queue[ConnectionEvent] | None = None
        self._dispatcher: asyncio.Task[None] | None = None
        self._open_task: asyncio.Task[None] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._reconnect_delay: float | None = None

        self._closing = False
        self._close_lock = asyncio.Lock()

        self._handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            ConnectRequested: self._on_connect_requested,
            TransportOpened: self._on_transport_opened,
            MessageReceived: self._on_message_received,
            TransportErrored: self._on_transport_errored,
            TransportClosed: self._on_transport_closed,
            HandshakeResolved: self._on_handshake_resolved,
            ReconnectDue: self._on_reconnect_due,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> Session | None:
        """The current session; None unless the state is READY."""
        return self._session

    @property
    def attempt(self) -> int:
        """Reconnect attempt counter (1-based), reset on every transport open."""
        return self._attempt

    @property
    def reconnect_delay(self) -> float | None:
        """Delay of the currently scheduled reconnect, or None."""
        return self._reconnect_delay if self._reconnect_timer is not None else None

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def is_closed(self) -> bool:
        return self._closing

    def get_session_id(self) -> str | None:
        """Identifier of the current session, or None if not READY."""
        return self._session.session_id if self._session is not None else None

    async def connect(self) -> None:
        """
        Start connecting in the background.

        Idempotent: while a connection is being established, is established,
        or a reconnect is already scheduled, calling this again has no effect.
        Never raises for connection failures; those drive the reconnect loop.
        """
        if self._closing:
            self._log.warning("connect() called on a closed connection manager")
            return
        self._ensure_dispatcher()
        self._post(ConnectRequested())

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        """
        Wait until the connection is READY.

        Returns
        -------
        bool
            True once ready, False if the timeout elapsed first.
        """
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def send(self, envelope: Envelope, override: bool = False) -> bool:
        """
        Serialize and write an envelope if the connection allows it.

        Parameters
        ----------
        envelope : Envelope
            The envelope to write.
        override : bool, optional
            Bypass the readiness gate. Only the ``authenticate`` envelope
            uses this.

        Returns
        -------
        bool
            True if the envelope was written to the transport. False if it was
            dropped because the connection is not ready, there is no transport,
            or the write failed. Dropped envelopes are not queued.
        """
        if self._state is not ConnectionState.READY and not override:
            self._log.debug(
                f"Ignoring send - socket is not ready ({self._state.value})."
            )
            return False

        transport = self._transport
        if transport is None:
            self._log.debug("Ignoring send - no open transport.")
            return False

        raw = self._codec.encode(envelope)
        self._log.debug(f"Sending {raw}")
        try:
            await transport.send(raw)
        except (TransportError, TransportClosedError) as e:
            # The reader reports the close; the lifecycle reacts there
            self._log.warning(f"Send failed: {e}")
            return False
        return True

    async def close(self) -> None:
        """
        Shut down: stop reconnecting, close the transport, stop all tasks.

        This method is idempotent and can be safely called multiple times.
        """
        async with self._close_lock:
            if self._closing:
                self._log.debug("Close already in progress, skipping duplicate call")
                return
            self._closing = True

        self._log.info("Closing FUB connection...")
        self._cancel_reconnect_timer()

        current = asyncio.current_task()
        for task in (self._dispatcher, self._open_task):
            if task is not None and task is not current:
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._dispatcher = None
        self._open_task = None

        # Transports opened but never handed to the dispatcher
        if self._events is not None:
            while not self._events.empty():
                event = self._events.get_nowait()
                if isinstance(event, TransportOpened):
                    await self._close_transport(event.transport)

        was_ready = self._state is ConnectionState.READY
        await self._teardown_transport()
        self._set_state(ConnectionState.DISCONNECTED)
        if was_ready:
            await self._notify_disconnect()

    async def __aenter__(self) -> ConnectionManager:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any, **kwargs: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Event plumbing
    # ------------------------------------------------------------------

    def _ensure_dispatcher(self) -> None:
        if self._events is None:
            self._events = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())

    def _post(self, event: ConnectionEvent) -> None:
        if self._closing or self._events is None:
            return
        self._events.put_nowait(event)

    async def _dispatch_loop(self) -> None:
        if self._events is None:
            raise RuntimeError("Event queue must be created before dispatching")
        while True:
            event = await self._events.get()
            try:
                await self._handlers[type(event)](event)
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception(
                    f"Unexpected error while handling {type(event).__name__}"
                )

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            self._log.debug(f"State {self._state.value} -> {state.value}")
        self._state = state
        if state is ConnectionState.READY:
            self._ready.set()
        else:
            self._session = None
            self._ready.clear()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_connect_requested(self, event: ConnectRequested) -> None:
        if self._state is not ConnectionState.DISCONNECTED:
            self._log.debug(f"connect() ignored, already {self._state.value}")
            return
        if self._reconnect_timer is not None:
            self._log.debug("connect() ignored, a reconnect is already scheduled")
            return
        self._attempt = 1
        self._open_transport()

    async def _on_transport_opened(self, event: TransportOpened) -> None:
        if (
            event.generation != self._generation
            or self._state is not ConnectionState.CONNECTING
        ):
            self._log.debug("Discarding transport from a retired attempt")
            await self._close_transport(event.transport)
            return

        self._transport = event.transport
        # reset the tries back to 1 since we have a new connection opened
        self._attempt = 1
        self._set_state(ConnectionState.AUTHENTICATING)
        self._pump_task = asyncio.create_task(
            self._pump(event.generation, event.transport)
        )

        self._authenticator = Authenticator(
            self.identity,
            self.send,
            self._codec,
            timeout=self.config.auth.timeout,
            log=self._log,
        )
        result = await self._authenticator.start()
        result.add_done_callback(partial(self._on_handshake_done, event.generation))

    async def _on_message_received(self, event: MessageReceived) -> None:
        if event.generation != self._generation:
            return
        authenticator = self._authenticator
        if self._state is ConnectionState.AUTHENTICATING and authenticator is not None:
            authenticator.on_message(event.raw)
            # Settle here so the next queued message already sees the new state
            if authenticator.done and authenticator.result is not None:
                await self._settle_handshake(authenticator.result)
        elif self._state is ConnectionState.READY:
            await self._dispatch_incoming(event.raw)
        else:
            self._log.debug(f"Ignoring message while {self._state.value}")

    async def _on_transport_errored(self, event: TransportErrored) -> None:
        if event.generation != self._generation:
            return
        # The close that follows drives the state change
        self._log.warning(f"Error: {event.error}")

    async def _on_transport_closed(self, event: TransportClosed) -> None:
        if event.generation != self._generation:
            return
        if event.code is not None:
            self._log.info(
                f"Closed. Close code: {event.code}, reason: "
                f"{event.reason or '(no reason provided)'}"
            )
        else:
            self._log.info("Closed.")

        was_ready = self._state is ConnectionState.READY
        await self._teardown_transport()
        self._set_state(ConnectionState.DISCONNECTED)
        if was_ready:
            await self._notify_disconnect()
        self._schedule_reconnect()

    async def _on_handshake_resolved(self, event: HandshakeResolved) -> None:
        if (
            event.generation != self._generation
            or self._state is not ConnectionState.AUTHENTICATING
            or event.result.cancelled()
        ):
            return
        await self._settle_handshake(event.result)

    async def _settle_handshake(self, result: asyncio.Future[Session]) -> None:
        """Move to READY, or tear down and reconnect, from a finished handshake."""
        error = result.exception()
        if error is None:
            session = result.result()
            self._authenticator = None
            self._session = session
            self._set_state(ConnectionState.READY)
            self._log.info(f"Authenticated. SessionID: {session.session_id}")
            await self._notify_connect(session)
            return

        self._log.warning(f"Authentication failed: {error}")
        # Retire the transport so its close event does not schedule a second reconnect
        await self._teardown_transport()
        self._set_state(ConnectionState.DISCONNECTED)
        self._schedule_reconnect()

    async def _on_reconnect_due(self, event: ReconnectDue) -> None:
        self._reconnect_timer = None
        self._reconnect_delay = None
        if self._state is not ConnectionState.DISCONNECTED:
            return
        self._open_transport()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_transport(self) -> None:
        self._generation += 1
        self._set_state(ConnectionState.CONNECTING)
        self._log.info(
            f"Connection attempt {self._attempt} to {self.server_address}"
        )
        self._open_task = asyncio.create_task(self._open(self._generation))

    async def _open(self, generation: int) -> None:
        try:
            transport = await self._transport_factory(self.server_address)
        except (TransportError, TransportClosedError, OSError) as e:
            self._log.info(f"Connection failed - {e}")
            self._post(TransportErrored(generation, e))
            self._post(TransportClosed(generation))
            return
        except Exception as e:
            self._log.exception(
                f"Transport factory failed with unexpected error: {type(e).__name__}"
            )
            self._post(TransportErrored(generation, e))
            self._post(TransportClosed(generation))
            return
        self._post(TransportOpened(generation, transport))

    async def _pump(self, generation: int, transport: TransportProtocol) -> None:
        """Turn inbound traffic of one transport into events until it closes."""
        try:
            while True:
                raw = await transport.recv()
                self._post(MessageReceived(generation, raw))
        except TransportClosedError as e:
            self._post(TransportClosed(generation, e.code, e.reason))
        except TransportError as e:
            self._post(TransportErrored(generation, e))
            self._post(TransportClosed(generation))
        except Exception as e:
            self._log.exception(f"Transport reader failed: {type(e).__name__}")
            self._post(TransportErrored(generation, e))
            self._post(TransportClosed(generation))

    def _on_handshake_done(
        self, generation: int, result: asyncio.Future[Session]
    ) -> None:
        # Mark the outcome retrieved; the event may be dropped as stale
        if not result.cancelled():
            result.exception()
        self._post(HandshakeResolved(generation, result))

    def _schedule_reconnect(self) -> None:
        if self._closing:
            return
        if (
            self._max_reconnect_attempts is not None
            and self._attempt > self._max_reconnect_attempts
        ):
            self._log.error(
                f"All {self._max_reconnect_attempts} reconnection attempts "
                f"exhausted. Giving up."
            )
            return

        delay = self._backoff(self._attempt)
        self._log.info(
            f"Reconnecting... waiting {delay:.1f}s (attempt {self._attempt})"
        )
        self._attempt += 1
        self._reconnect_delay = delay
        self._reconnect_timer = asyncio.get_running_loop().call_later(
            delay, self._post, ReconnectDue()
        )

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
            self._reconnect_delay = None

    async def _teardown_transport(self) -> None:
        """Retire the current transport, its reader and any pending handshake."""
        self._generation += 1

        if self._authenticator is not None:
            self._authenticator.cancel()
            self._authenticator = None

        pump, self._pump_task = self._pump_task, None
        if pump is not None and pump is not asyncio.current_task():
            pump.cancel()
            with suppress(asyncio.CancelledError):
                await pump

        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_transport(transport)

    async def _close_transport(self, transport: TransportProtocol) -> None:
        try:
            await transport.close()
        except (TransportError, TransportClosedError, OSError) as e:
            self._log.debug(f"Ignoring error while closing transport: {e}")

    async def _dispatch_incoming(self, raw: str | bytes) -> None:
        self._log.debug(f"Got: {raw!r}")
        try:
            envelope = self._codec.decode(raw)
        except EnvelopeDecodeError as e:
            self._log.warning(f"Dropping undecodable message: {e}")
            return
        for callback in self._on_message:
            try:
                await callback(envelope)
            except Exception as e:
                self._log.error(f"Message callback failed: {type(e).__name__}: {e}")

    async def _notify_connect(self, session: Session) -> None:
        # Callback failures are logged and never break the connection
        for callback in self._on_connect:
            try:
                await callback(session)
            except Exception as e:
                self._log.error(f"Connect callback failed: {type(e).__name__}: {e}")

    async def _notify_disconnect(self) -> None:
        for callback in self._on_disconnect:
            try:
                await callback()
            except Exception as e:
                self._log.error(
                    f"Disconnect callback failed: {type(e).__name__}: {e}"
                )
