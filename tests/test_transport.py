"""
Tests for the websocket transport and its factory.

This test module covers:
- Translation of websockets exceptions into transport errors
- Idempotent close
- Connect keyword arguments built from WebSocketConnectionConfig
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosed, InvalidURI
from websockets.frames import Close

from fub_client.config import WebSocketConnectionConfig
from fub_client.exceptions import TransportClosedError, TransportError
from fub_client.transport import (
    WS_CLOSE_CODE_NORMAL,
    WebSocketTransport,
    WebSocketTransportFactory,
)


def make_raw_socket() -> MagicMock:
    raw = MagicMock()
    raw.send = AsyncMock()
    raw.recv = AsyncMock()
    raw.close = AsyncMock()
    return raw


# ============================================================================
# WebSocketTransport
# ============================================================================


class TestWebSocketTransport:
    """The transport hides websockets exceptions behind its own."""

    @pytest.mark.asyncio
    async def test_send_and_recv_pass_through(self) -> None:
        raw = make_raw_socket()
        raw.recv.return_value = '{"type": "ping"}'
        transport = WebSocketTransport(raw)

        await transport.send('{"type": "set"}')

        raw.send.assert_awaited_once_with('{"type": "set"}')
        assert await transport.recv() == '{"type": "ping"}'

    @pytest.mark.asyncio
    async def test_connection_closed_on_recv(self) -> None:
        raw = make_raw_socket()
        raw.recv.side_effect = ConnectionClosed(Close(1012, "restarting"), None)
        transport = WebSocketTransport(raw)

        with pytest.raises(TransportClosedError) as exc_info:
            await transport.recv()

        assert exc_info.value.code == 1012
        assert exc_info.value.reason == "restarting"

    @pytest.mark.asyncio
    async def test_connection_closed_without_close_frame(self) -> None:
        raw = make_raw_socket()
        raw.send.side_effect = ConnectionClosed(None, None)
        transport = WebSocketTransport(raw)

        with pytest.raises(TransportClosedError) as exc_info:
            await transport.send("x")

        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_os_error_becomes_transport_error(self) -> None:
        raw = make_raw_socket()
        raw.recv.side_effect = ConnectionResetError("reset by peer")
        transport = WebSocketTransport(raw)

        with pytest.raises(TransportError, match="ConnectionResetError"):
            await transport.recv()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        raw = make_raw_socket()
        transport = WebSocketTransport(raw)
        assert not transport.closed

        await transport.close()
        await transport.close()

        raw.close.assert_awaited_once_with(WS_CLOSE_CODE_NORMAL)
        assert transport.closed

    @pytest.mark.asyncio
    async def test_close_ignores_broken_connection(self) -> None:
        raw = make_raw_socket()
        raw.close.side_effect = OSError("broken pipe")
        transport = WebSocketTransport(raw)

        await transport.close()

        assert transport.closed


# ============================================================================
# WebSocketTransportFactory
# ============================================================================


class TestWebSocketTransportFactory:
    """The factory opens websockets with configured options."""

    @pytest.mark.asyncio
    async def test_connect_kwargs_from_config(self) -> None:
        raw = make_raw_socket()
        config = WebSocketConnectionConfig(
            open_timeout=5.0, ping_interval=None, max_message_size=2048
        )
        factory = WebSocketTransportFactory(
            config, extra_kwargs={"additional_headers": {"X-Device": "dev"}}
        )

        with patch(
            "fub_client.transport.websockets.connect",
            new=AsyncMock(return_value=raw),
        ) as connect:
            transport = await factory("ws://bridge.test:8080")

        assert isinstance(transport, WebSocketTransport)
        connect.assert_awaited_once_with(
            "ws://bridge.test:8080",
            open_timeout=5.0,
            ping_interval=None,
            ping_timeout=20.0,
            max_size=2048,
            compression=None,
            additional_headers={"X-Device": "dev"},
        )

    @pytest.mark.asyncio
    async def test_extra_kwargs_override_config(self) -> None:
        factory = WebSocketTransportFactory(extra_kwargs={"max_size": None})

        assert factory.connect_kwargs["max_size"] is None

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionRefusedError("refused"),
            InvalidURI("nope://", "scheme isn't ws or wss"),
            TimeoutError("timed out"),
        ],
    )
    @pytest.mark.asyncio
    async def test_open_failures_become_transport_error(
        self, error: Exception
    ) -> None:
        factory = WebSocketTransportFactory()

        with patch(
            "fub_client.transport.websockets.connect",
            new=AsyncMock(side_effect=error),
        ):
            with pytest.raises(TransportError):
                await factory("ws://bridge.test:8080")

    def test_invalid_config_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="compression"):
            WebSocketTransportFactory(WebSocketConnectionConfig(compression="gzip"))

    @pytest.mark.asyncio
    async def test_injected_logger_reaches_opened_transports(self) -> None:
        """
        Test that the factory's logger is shared with its transports.

        Verifies that:
        - The connect diagnostics go to the injected logger
        - The service-restart notice of an opened transport does too
        """
        log = MagicMock()
        raw = make_raw_socket()
        raw.recv.side_effect = ConnectionClosed(Close(1012, "restarting"), None)
        factory = WebSocketTransportFactory(log=log)

        with patch(
            "fub_client.transport.websockets.connect",
            new=AsyncMock(return_value=raw),
        ):
            transport = await factory("ws://bridge.test:8080")
        with pytest.raises(TransportClosedError):
            await transport.recv()

        log.debug.assert_called_once()
        log.info.assert_called_once()
        assert "1012" in log.info.call_args.args[0]
