"""Configuration dataclasses for the FUB client.

This module provides immutable, validated configuration objects for the
connection lifecycle: reconnect backoff, the authentication handshake and
the underlying websocket transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_AUTH_TIMEOUT = 10.0
DEFAULT_BACKOFF_STEP = 1.0
DEFAULT_MAX_BACKOFF = 30.0
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024  # 1 MiB


@dataclass(frozen=True)
class ReconnectConfig:
    """Configuration for the reconnect loop.

    The delay before reconnect attempt ``k`` (1-based) is
    ``min(max_backoff, k * backoff_step)`` seconds. There is no jitter.

    Parameters
    ----------
    backoff_step : float, default 1.0
        Delay increment per attempt, in seconds.
    max_backoff : float, default 30.0
        Upper bound for a single delay, in seconds.
    max_reconnect_attempts : int | None, default None
        Number of consecutive failed attempts after which the client stops
        reconnecting. ``None`` keeps reconnecting forever.

    Examples
    --------
    >>> config = ReconnectConfig()
    >>> assert config.max_reconnect_attempts is None

    >>> # Fast retries for tests
    >>> config = ReconnectConfig(backoff_step=0.01, max_backoff=0.1)
    """

    backoff_step: float = DEFAULT_BACKOFF_STEP
    max_backoff: float = DEFAULT_MAX_BACKOFF
    max_reconnect_attempts: int | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Raises
        ------
        ValueError
            If backoff_step is negative, if max_backoff is smaller than
            backoff_step, or if max_reconnect_attempts is less than 1.
        """
        if self.backoff_step < 0:
            raise ValueError(
                f"backoff_step must be non-negative, got {self.backoff_step}"
            )

        if self.max_backoff < self.backoff_step:
            raise ValueError(
                f"max_backoff ({self.max_backoff}s) must not be smaller than "
                f"backoff_step ({self.backoff_step}s)"
            )

        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 1:
            raise ValueError(
                f"max_reconnect_attempts must be at least 1 or None, "
                f"got {self.max_reconnect_attempts}"
            )

    def validate(self) -> None:
        """Explicitly validate the configuration.

        Validation is automatically performed in __post_init__, so this is
        typically not needed.
        """
        # Validation is already done in __post_init__


@dataclass(frozen=True)
class AuthConfig:
    """Configuration for the authentication handshake.

    Parameters
    ----------
    timeout : float, default 10.0
        Seconds to wait for ``session_start`` after sending ``authenticate``.
    """

    timeout: float = DEFAULT_AUTH_TIMEOUT

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    def validate(self) -> None:
        """Explicitly validate the configuration."""
        # Validation is already done in __post_init__


@dataclass(frozen=True)
class WebSocketConnectionConfig:
    """Configuration for the websocket transport.

    Parameters
    ----------
    open_timeout : float | None, default 10.0
        Timeout in seconds for the opening handshake. ``None`` disables it.
    ping_interval : float | None, default 20.0
        Interval between protocol-level keepalive pings. ``None`` disables
        keepalive.
    ping_timeout : float | None, default 20.0
        Time to wait for a pong before the connection is considered broken.
    max_message_size : int, default 1048576
        Largest inbound message accepted, in bytes. Enforced by the websocket
        library and again by the codec before parsing.
    compression : str | None, default None
        ``"deflate"`` to negotiate permessage-deflate, ``None`` to disable.
        Envelopes are small, so compression is off by default.

    Examples
    --------
    >>> config = WebSocketConnectionConfig(ping_interval=None)
    >>> config.validate()
    """

    open_timeout: float | None = 10.0
    ping_interval: float | None = 20.0
    ping_timeout: float | None = 20.0
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE
    compression: str | None = None

    def validate(self) -> None:
        """Explicitly validate the configuration.

        Raises
        ------
        ValueError
            If compression is not None or "deflate", if max_message_size is
            not positive, or if any timeout is negative.
        """
        if self.compression is not None and self.compression != "deflate":
            raise ValueError(
                f"Invalid compression method: '{self.compression}'. "
                f"Supported values: None (disabled) or 'deflate' (permessage-deflate)"
            )

        if self.max_message_size <= 0:
            raise ValueError(
                f"max_message_size must be positive, got {self.max_message_size}"
            )

        for name in ("open_timeout", "ping_interval", "ping_timeout"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``websockets.connect()``."""
        return {
            "open_timeout": self.open_timeout,
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "max_size": self.max_message_size,
            "compression": self.compression,
        }


@dataclass(frozen=True)
class FubClientConfig:
    """Complete configuration for client behavior.

    The server address, device ID and debug-log flag are constructor
    arguments of the client itself; this object carries the tunables.

    Parameters
    ----------
    reconnect : ReconnectConfig, default ReconnectConfig()
        Backoff and retry bound.
    auth : AuthConfig, default AuthConfig()
        Handshake timeout.
    websocket : WebSocketConnectionConfig, default WebSocketConnectionConfig()
        Transport settings.
    websocket_kwargs : dict[str, Any], default {}
        Extra keyword arguments passed to ``websockets.connect()`` (headers,
        proxy settings...). They override values derived from ``websocket``.

    Examples
    --------
    >>> config = FubClientConfig()
    >>> config.validate()

    >>> config = FubClientConfig.production_defaults()
    >>> assert config.reconnect.max_reconnect_attempts is None
    """

    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    websocket: WebSocketConnectionConfig = field(
        default_factory=WebSocketConnectionConfig
    )
    websocket_kwargs: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate all sub-configurations.

        Raises
        ------
        ValueError
            If any sub-configuration validation fails.
        """
        self.reconnect.validate()
        self.auth.validate()
        self.websocket.validate()

    @classmethod
    def production_defaults(cls) -> FubClientConfig:
        """Create configuration with production defaults.

        Unbounded reconnects with the standard linear backoff, protocol-level
        keepalive enabled.
        """
        return cls(
            reconnect=ReconnectConfig(),
            auth=AuthConfig(timeout=DEFAULT_AUTH_TIMEOUT),
            websocket=WebSocketConnectionConfig(ping_interval=20.0, ping_timeout=20.0),
        )

    @classmethod
    def development_defaults(cls) -> FubClientConfig:
        """Create configuration with development-friendly defaults.

        Short backoff so a restarted local bridge is picked up quickly, and no
        keepalive pings to keep traces readable.
        """
        return cls(
            reconnect=ReconnectConfig(backoff_step=0.5, max_backoff=5.0),
            auth=AuthConfig(timeout=DEFAULT_AUTH_TIMEOUT),
            websocket=WebSocketConnectionConfig(ping_interval=None, ping_timeout=None),
        )
