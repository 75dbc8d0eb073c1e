"""Logging for relctl: a rich stderr handler and key=value context."""

import logging
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# The kubernetes client logs every request at debug through urllib3
QUIET_LOGGERS = ("urllib3", "kubernetes")

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def level(self) -> int:
        return getattr(logging, self.value.upper())

    @classmethod
    def from_verbosity(cls, verbose: int, quiet: bool, default: "LogLevel") -> "LogLevel":
        """Resolve -v/-q flags against the configured level.

        -v wins over -q, and either flag wins over the configuration.
        """
        if verbose >= 2:
            return cls.DEBUG
        if verbose == 1:
            return cls.INFO
        if quiet:
            return cls.ERROR
        return default


def _build_handler(rich_output: bool) -> logging.Handler:
    if rich_output:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    return handler


def setup_logging(level: LogLevel = LogLevel.WARNING, rich_output: bool = True) -> logging.Logger:
    """Install one stderr handler on the root logger.

    Args:
        level: Level for relctl loggers
        rich_output: Use rich formatting, or plain lines for CI logs

    Returns:
        The relctl package logger
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(_build_handler(rich_output))
    root_logger.setLevel(level.level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level.level, logging.WARNING))

    logger = logging.getLogger("relctl")
    logger.setLevel(level.level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the relctl namespace."""
    if name == "relctl" or name.startswith("relctl."):
        return logging.getLogger(name)
    return logging.getLogger(f"relctl.{name}")


class StructuredLogger:
    """Logger that appends bound key=value context to every message.

    Example:
        log = StructuredLogger(__name__).bind(release="prod/shop")
        log.info("Selector patched", color="green")
        # Selector patched [release=prod/shop color=green]
    """

    def __init__(self, name: str, context: dict[str, Any] | None = None):
        self._logger = get_logger(name)
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Return a logger with additional context."""
        return StructuredLogger(self._logger.name, {**self._context, **kwargs})

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        context = {**self._context, **fields}
        if context:
            message = f"{message} [{' '.join(f'{k}={v}' for k, v in context.items())}]"
        self._logger.log(level, message)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)


def release_logger(strategy: str, namespace: str, service: str) -> StructuredLogger:
    """Logger for one release controller; every line names the release."""
    return StructuredLogger(f"release.{strategy}").bind(release=f"{namespace}/{service}")
