"""
Logging setup for fub_client.

Every module logs through ``get_logger(__name__)``; all standard-library
loggers live under the ``fub_client`` hierarchy. The output mode is chosen
once, either explicitly with ``logging_config.set_mode()`` or from the
``FUB_CLIENT_LOGGING`` environment variable (``no_logs``, ``simple``,
``stream`` or ``loguru``).
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from logging.config import dictConfig
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from loguru import Logger as LoguruLogger  # type: ignore[import-not-found]

ENV_VAR = "FUB_CLIENT_LOGGING"

ROOT_LOGGER_NAME = "fub_client"

_FORMAT = "%(levelname)-8s %(asctime)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LoggingModes(Enum):
    # silence the whole fub_client hierarchy
    NO_LOGS = 0
    # plain logging.getLogger(), configured by the application
    SIMPLE = 1
    # fub_client gets its own stderr handler
    STREAM = 2
    # hand everything to loguru
    LOGURU = 3


def _mode_from_env() -> LoggingModes:
    value = os.environ.get(ENV_VAR, "").strip().upper()
    return LoggingModes.__members__.get(value, LoggingModes.SIMPLE)


def _package_logger_config(mode: LoggingModes, level: int) -> dict[str, Any]:
    """dictConfig() schema that touches only the fub_client logger."""
    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"fub": {"format": _FORMAT, "datefmt": _DATE_FORMAT}},
        "handlers": {},
        "loggers": {},
    }
    if mode is LoggingModes.STREAM:
        config["handlers"]["fub_stderr"] = {
            "class": "logging.StreamHandler",
            "formatter": "fub",
        }
        config["loggers"][ROOT_LOGGER_NAME] = {
            "handlers": ["fub_stderr"],
            "level": level,
            "propagate": False,
        }
    else:
        config["loggers"][ROOT_LOGGER_NAME] = {"handlers": [], "propagate": False}
    return config


class LoggingConfig:
    """
    Process-wide logging mode for the library.

    ``set_mode()`` should be called before clients are created. For anything
    beyond these presets configure the ``fub_client`` logger with
    ``logging.config`` directly and keep the SIMPLE mode.
    """

    def __init__(self) -> None:
        self._mode: LoggingModes | None = None

    def get_mode(self) -> LoggingModes:
        if self._mode is None:
            self.set_mode(_mode_from_env())
        if self._mode is None:
            raise RuntimeError("Logging mode must be set by set_mode() method")
        return self._mode

    def set_mode(
        self, mode: LoggingModes = LoggingModes.STREAM, level: int = logging.INFO
    ) -> None:
        """
        Select how the library emits its diagnostics.

        Args:
            mode (LoggingModes, optional): Output mode. Defaults to
                LoggingModes.STREAM.
            level (int, optional): Threshold of the STREAM handler. Defaults to
                logging.INFO.
        """
        self._mode = mode
        if mode in (LoggingModes.SIMPLE, LoggingModes.LOGURU):
            return
        dictConfig(_package_logger_config(mode, level))
        logging.getLogger(ROOT_LOGGER_NAME).disabled = mode is LoggingModes.NO_LOGS


# Singleton used by get_logger()
logging_config = LoggingConfig()


def _make_disabled_logger() -> logging.Logger:
    # Not registered with the logging manager, so dictConfig() never re-enables it
    disabled = logging.Logger(f"{ROOT_LOGGER_NAME}.disabled")
    disabled.addHandler(logging.NullHandler())
    disabled.propagate = False
    disabled.disabled = True
    return disabled


_DISABLED_LOGGER = _make_disabled_logger()


def get_logger(
    name: str, enabled: bool = True
) -> Union[logging.Logger, LoguruLogger]:
    """
    Return the logger for a module or a client instance.

    Args:
        name (str): Module name; nested under ``fub_client`` if it is not
            already.
        enabled (bool): When False a silent logger is returned whatever the
            mode. Clients built with ``enable_debug_logs=False`` receive it.

    Returns:
        A logging.Logger, or the loguru logger in LOGURU mode.
    """
    if not enabled:
        return _DISABLED_LOGGER
    if logging_config.get_mode() is LoggingModes.LOGURU:
        from loguru import logger

        return logger
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
