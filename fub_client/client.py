"""
FubClient: the public facade of the package.

Wraps a ConnectionManager and adds the convenience calls for the bridge's
write operations and the remote logging facade.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .connection_manager import ConnectionManager, ConnectionState
from .logger import get_logger
from .schemas import (
    DeviceIdentity,
    IncrementMessage,
    LogLevel,
    LogMessage,
    SetMessage,
    SetOnceMessage,
)

if TYPE_CHECKING:
    from ._internal.protocols import TransportFactory
    from .config import FubClientConfig
    from .connection_manager import (
        OnConnectCallback,
        OnDisconnectCallback,
        OnMessageCallback,
    )
    from .schemas import Envelope, Session


class FubClient:
    """
    Client for the Firebase UDP Bridge.

    Holds a long-lived, authenticated websocket to the bridge and reconnects
    on its own. All write calls are best-effort: while the connection is not
    ready they are dropped and return False. Nothing is queued.

    Parameters
    ----------
    server_address : str
        Bridge websocket address.
    device_id : str
        Device identity sent in the ``authenticate`` envelope.
    enable_debug_logs : bool, optional
        When False (default) this client produces no diagnostic log output.
        Protocol behavior is unaffected.
    config : FubClientConfig | None, optional
        Reconnect, handshake and websocket tunables.
    transport_factory : TransportFactory | None, optional
        Replaces the default websocket transport.
    on_connect, on_disconnect, on_message : list | None, optional
        Lifecycle and inbound-message callbacks, see ConnectionManager.

    Examples
    --------
    ::

        async with FubClient("ws://bridge.local:8080", "sensor-12") as client:
            await client.wait_until_ready(timeout=15)
            await client.set("sensors/12/temperature", 21.5)
            await client.increment("sensors/12/readings", 1)
            await client.log_info("sampler", "reading stored")
    """

    def __init__(
        self,
        server_address: str,
        device_id: str,
        enable_debug_logs: bool = False,
        *,
        config: FubClientConfig | None = None,
        transport_factory: TransportFactory | None = None,
        on_connect: list[OnConnectCallback] | None = None,
        on_disconnect: list[OnDisconnectCallback] | None = None,
        on_message: list[OnMessageCallback] | None = None,
    ) -> None:
        self.identity = DeviceIdentity(device_id)
        self.enable_debug_logs = enable_debug_logs
        self.manager = ConnectionManager(
            server_address,
            self.identity,
            config=config,
            transport_factory=transport_factory,
            log=get_logger(__name__, enabled=enable_debug_logs),
            on_connect=on_connect,
            on_disconnect=on_disconnect,
            on_message=on_message,
        )

    @property
    def device_id(self) -> str:
        return self.identity.device_id

    @property
    def server_address(self) -> str:
        return self.manager.server_address

    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    @property
    def session(self) -> Session | None:
        return self.manager.session

    def get_session_id(self) -> str | None:
        """Identifier of the current session, or None while not ready."""
        return self.manager.get_session_id()

    async def connect(self) -> None:
        """Start connecting in the background. Idempotent; never raises."""
        await self.manager.connect()

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        return await self.manager.wait_until_ready(timeout)

    async def close(self) -> None:
        await self.manager.close()

    async def send(self, envelope: Envelope, override: bool = False) -> bool:
        """Gated send, see :meth:`ConnectionManager.send`."""
        return await self.manager.send(envelope, override)

    async def __aenter__(self) -> FubClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any, **kwargs: Any) -> None:
        await self.close()

    # Bridge writes

    async def set(self, path: str, value: Any) -> bool:
        """Store ``value`` at ``path``."""
        return await self.send(SetMessage(path=path, value=value))

    async def set_once(self, path: str, value: Any) -> bool:
        """Store ``value`` at ``path`` unless a value is already there."""
        return await self.send(SetOnceMessage(path=path, value=value))

    async def increment(self, path: str, value: Any) -> bool:
        """Add ``value`` to the number stored at ``path``."""
        return await self.send(IncrementMessage(path=path, value=value))

    # Remote logging; dropped while not ready, never buffered

    async def log_info(self, module: str, message: str) -> bool:
        return await self._log(LogLevel.INFO, module, message)

    async def log_warn(self, module: str, message: str) -> bool:
        return await self._log(LogLevel.WARN, module, message)

    async def log_error(self, module: str, message: str) -> bool:
        return await self._log(LogLevel.ERROR, module, message)

    async def _log(self, level: LogLevel, module: str, message: str) -> bool:
        return await self.send(
            LogMessage(
                session_id=self.get_session_id(),
                level=level,
                module=module,
                message=message,
            )
        )
