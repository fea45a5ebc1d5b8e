"""
Exception classes for fub_client.

This module defines all custom exceptions raised by the library.
All exceptions inherit from FubError, which inherits from Exception.

None of these escape the public ``connect()`` / ``send()`` calls: the
connection manager absorbs them and turns them into reconnect attempts.
"""

from __future__ import annotations

from typing import Any


class FubError(Exception):
    """
    Base exception for all client errors.

    Catching this exception will catch all library-specific errors.
    """


class FubInvalidStateError(FubError):
    """
    Raised when an operation is attempted in an invalid state.

    Examples of invalid states:
    - Calling connect() on a manager that has already been closed
    - Starting a second handshake on an authenticator
    """


class AuthenticationError(FubError):
    """Base class for handshake failures."""


class AuthTimeoutError(AuthenticationError):
    """
    Raised when no handshake response arrives within the auth timeout.

    Recovered locally by falling back to reconnect-with-backoff.
    """

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Auth request timed out after {timeout}s")
        self.timeout = timeout


class AuthProtocolMismatchError(AuthenticationError):
    """
    Raised when the first message after ``authenticate`` is not a
    ``session_start`` envelope.

    The unexpected message is kept on ``payload`` for diagnostics.
    """

    def __init__(self, payload: Any) -> None:
        super().__init__(f"Unexpected response: {payload!r}")
        self.payload = payload


class TransportError(FubError):
    """
    Raised when the transport fails to open or fails while in use.

    A transport error does not itself change the connection state;
    the close that follows does.
    """


class TransportClosedError(FubError):
    """
    Raised when the transport has been closed, by either side.

    There is no distinction between clean and abnormal closure: both
    drive the reconnect loop.
    """

    def __init__(self, code: int | None = None, reason: str | None = None) -> None:
        message = "Transport closed"
        if code is not None:
            message += f" (code {code}: {reason or 'no reason provided'})"
        super().__init__(message)
        self.code = code
        self.reason = reason


class EnvelopeDecodeError(FubError, ValueError):
    """Raised when an inbound message is not a valid envelope."""


class MessageTooLargeError(EnvelopeDecodeError):
    """
    Raised when a received message exceeds the configured size limit.

    The size limit is checked before deserialization.
    """
