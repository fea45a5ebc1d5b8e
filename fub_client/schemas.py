from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Version tag carried by every log envelope
LOG_MESSAGE_VERSION = 1


class MessageType(str, Enum):
    """
    Wire tag of an envelope (its ``type`` field).

    Only ``authenticate``, ``session_start``, ``set``, ``set_once``,
    ``increment`` and ``log`` have typed models below; the remaining tags are
    protocol-defined by the bridge and decode to a plain :class:`Envelope`.
    """

    PING = "ping"
    GET = "get"
    VALUE = "value"
    SET = "set"
    SET_ONCE = "set_once"
    INCREMENT = "increment"
    PUSH = "push"
    SUBSCRIBE = "subscribe"
    SUBSCRIBE_CHANNEL = "subscribe_channel"
    UNSUBSCRIBE = "unsubscribe"
    ERROR = "error"
    AUTHENTICATE = "authenticate"
    SESSION_START = "session_start"
    LOG = "log"


class LogLevel(str, Enum):
    """Severity of a remote log envelope."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class FubConstants:
    """
    Special values understood by the bridge.

    Attributes
    ----------
    TIMESTAMP : str
        Placeholder the server replaces with its own clock when it appears as
        the value of a ``set`` / ``set_once`` write.

    Examples
    --------
    >>> await client.set("devices/kitchen/last_seen", FubConstants.TIMESTAMP)
    """

    TIMESTAMP = "fub:timestamp"


class Envelope(BaseModel):
    """
    One discrete wire message, tagged by ``type``.

    Envelopes are immutable once constructed. Fields that are not modelled
    (for protocol-defined types such as ``value`` or ``push``) are kept as
    extra attributes and serialized back unchanged.

    Wire names are camelCase; Python attributes are snake_case and mapped with
    aliases. Both names are accepted on construction.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    type: MessageType


class AuthenticateMessage(Envelope):
    """Handshake request: ``{type: "authenticate", id}``."""

    model_config = ConfigDict(extra="ignore")

    type: Literal[MessageType.AUTHENTICATE] = MessageType.AUTHENTICATE
    device_id: str = Field(alias="id")


class SessionStartMessage(Envelope):
    """Handshake response: ``{type: "session_start", sessionID, serverTime}``."""

    model_config = ConfigDict(extra="ignore")

    type: Literal[MessageType.SESSION_START] = MessageType.SESSION_START
    session_id: str = Field(alias="sessionID")
    server_time: Any = Field(alias="serverTime")


class SetMessage(Envelope):
    """Write ``value`` at ``path``."""

    model_config = ConfigDict(extra="ignore")

    type: Literal[MessageType.SET] = MessageType.SET
    path: str
    value: Any = None


class SetOnceMessage(Envelope):
    """Write ``value`` at ``path`` only if nothing is stored there yet."""

    model_config = ConfigDict(extra="ignore")

    type: Literal[MessageType.SET_ONCE] = MessageType.SET_ONCE
    path: str
    value: Any = None


class IncrementMessage(Envelope):
    """Add ``value`` to the number stored at ``path``."""

    model_config = ConfigDict(extra="ignore")

    type: Literal[MessageType.INCREMENT] = MessageType.INCREMENT
    path: str
    value: Any = None


class LogMessage(Envelope):
    """Remote log line: ``{type: "log", version, sessionID, level, module, message}``."""

    model_config = ConfigDict(extra="ignore")

    type: Literal[MessageType.LOG] = MessageType.LOG
    version: int = LOG_MESSAGE_VERSION
    session_id: Optional[str] = Field(default=None, alias="sessionID")
    level: LogLevel
    module: str
    message: str


# Envelope model per wire tag; tags not listed decode to the plain Envelope
ENVELOPE_MODELS: dict[MessageType, type[Envelope]] = {
    MessageType.AUTHENTICATE: AuthenticateMessage,
    MessageType.SESSION_START: SessionStartMessage,
    MessageType.SET: SetMessage,
    MessageType.SET_ONCE: SetOnceMessage,
    MessageType.INCREMENT: IncrementMessage,
    MessageType.LOG: LogMessage,
}


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity presented to the bridge in the ``authenticate`` envelope."""

    device_id: str

    def __post_init__(self) -> None:
        if not self.device_id:
            raise ValueError("device_id cannot be empty")


@dataclass(frozen=True)
class Session:
    """
    An authenticated session, created from a ``session_start`` envelope.

    Attributes
    ----------
    session_id : str
        Identifier assigned by the bridge.
    server_time : Any
        Server clock at session start, as sent by the bridge.
    """

    session_id: str
    server_time: Any

    @classmethod
    def from_message(cls, message: SessionStartMessage) -> "Session":
        return cls(session_id=message.session_id, server_time=message.server_time)
