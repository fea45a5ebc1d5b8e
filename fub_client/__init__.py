"""
fub_client - Firebase UDP Bridge client

An asyncio client that keeps a long-lived, authenticated websocket to the
bridge, reconnecting with linear backoff whenever the transport fails.
"""

# Protocol definitions
from fub_client._internal.protocols import TransportProtocol

# Client and connection lifecycle
from fub_client.client import FubClient
from fub_client.codec import MessageCodec

# Configuration classes
from fub_client.config import (
    AuthConfig,
    FubClientConfig,
    ReconnectConfig,
    WebSocketConnectionConfig,
)
from fub_client.connection_manager import ConnectionManager, ConnectionState

# Exceptions
from fub_client.exceptions import (
    AuthenticationError,
    AuthProtocolMismatchError,
    AuthTimeoutError,
    EnvelopeDecodeError,
    FubError,
    FubInvalidStateError,
    MessageTooLargeError,
    TransportClosedError,
    TransportError,
)

# Logging utilities
from fub_client.logger import LoggingModes, get_logger, logging_config

# Envelope schemas
from fub_client.schemas import (
    AuthenticateMessage,
    DeviceIdentity,
    Envelope,
    FubConstants,
    IncrementMessage,
    LogLevel,
    LogMessage,
    MessageType,
    Session,
    SessionStartMessage,
    SetMessage,
    SetOnceMessage,
)

# Transports (for advanced usage)
from fub_client.transport import (
    SimpleTransport,
    WebSocketTransport,
    WebSocketTransportFactory,
)

__version__ = "0.1.0"

__all__ = [
    "AuthConfig",
    "AuthProtocolMismatchError",
    "AuthTimeoutError",
    "AuthenticateMessage",
    "AuthenticationError",
    "ConnectionManager",
    "ConnectionState",
    "DeviceIdentity",
    "Envelope",
    "EnvelopeDecodeError",
    "FubClient",
    "FubClientConfig",
    "FubConstants",
    "FubError",
    "FubInvalidStateError",
    "IncrementMessage",
    "LogLevel",
    "LogMessage",
    "LoggingModes",
    "MessageCodec",
    "MessageTooLargeError",
    "MessageType",
    "ReconnectConfig",
    "Session",
    "SessionStartMessage",
    "SetMessage",
    "SetOnceMessage",
    "SimpleTransport",
    "TransportClosedError",
    "TransportError",
    "TransportProtocol",
    "WebSocketConnectionConfig",
    "WebSocketTransport",
    "WebSocketTransportFactory",
    "get_logger",
    "logging_config",
]
