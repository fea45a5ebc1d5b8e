"""
Envelope codec: envelopes to wire text and back.

One JSON object per message, UTF-8 text. Field order is irrelevant.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Union

from pydantic import ValidationError

from .config import DEFAULT_MAX_MESSAGE_SIZE
from .exceptions import EnvelopeDecodeError, MessageTooLargeError
from .logger import get_logger
from .schemas import ENVELOPE_MODELS, Envelope, MessageType

if TYPE_CHECKING:
    import logging

logger = get_logger(__name__)


class MessageCodec:
    """
    Serializes envelopes to JSON text and parses inbound text into envelopes.

    Parameters
    ----------
    max_message_size : int, optional
        Maximum accepted inbound message size in bytes (default 1 MiB).
        Larger messages are rejected before parsing.
    log : logging.Logger, optional
        Logger to use instead of the module logger.

    Examples
    --------
    >>> codec = MessageCodec()
    >>> codec.encode(SetMessage(path="a/b", value=42))
    '{"type":"set","path":"a/b","value":42}'
    >>> codec.decode('{"type": "session_start", "sessionID": "abc", "serverTime": 1}')
    SessionStartMessage(type=<MessageType.SESSION_START: 'session_start'>, ...)
    """

    def __init__(
        self,
        max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
        log: Union[logging.Logger, Any, None] = None,
    ) -> None:
        self._max_message_size = max_message_size
        self._log = log if log is not None else logger

    @property
    def max_message_size(self) -> int:
        return self._max_message_size

    def encode(self, envelope: Envelope) -> str:
        """
        Serialize an envelope to wire text using its wire (camelCase) names.

        Parameters
        ----------
        envelope : Envelope
            The envelope to serialize.

        Returns
        -------
        str
            JSON-encoded envelope.
        """
        return envelope.model_dump_json(by_alias=True)

    def decode(self, raw: str | bytes) -> Envelope:
        """
        Parse wire text into an envelope.

        Typed envelope kinds are validated against their model; other known
        kinds become a plain :class:`Envelope` with their fields kept as extras.

        Parameters
        ----------
        raw : str | bytes
            The received message. Bytes are decoded as UTF-8.

        Returns
        -------
        Envelope
            The parsed envelope (a subclass instance for typed kinds).

        Raises
        ------
        MessageTooLargeError
            If the message exceeds max_message_size.
        EnvelopeDecodeError
            If the text is not JSON, not an object, has an unknown ``type``,
            or fails validation.
        """
        size = len(raw) if isinstance(raw, bytes) else len(raw.encode("utf-8"))
        if size > self._max_message_size:
            self._log.error(
                f"Received message exceeds size limit: {size} bytes "
                f"(limit: {self._max_message_size} bytes)"
            )
            raise MessageTooLargeError(
                f"Incoming message size ({size} bytes) exceeds limit "
                f"({self._max_message_size} bytes)"
            )

        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise EnvelopeDecodeError(f"Message is not valid UTF-8: {e}") from e

        self._log.debug(f"Deserializing message: {raw}")
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EnvelopeDecodeError(f"Message is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise EnvelopeDecodeError(
                f"Expected a JSON object, got {type(data).__name__}"
            )

        try:
            message_type = MessageType(data.get("type"))
        except ValueError as e:
            raise EnvelopeDecodeError(
                f"Unknown envelope type: {data.get('type')!r}"
            ) from e

        model = ENVELOPE_MODELS.get(message_type, Envelope)
        try:
            return model.model_validate({**data, "type": message_type})
        except ValidationError as e:
            raise EnvelopeDecodeError(
                f"Invalid {message_type.value} envelope: {e}"
            ) from e
