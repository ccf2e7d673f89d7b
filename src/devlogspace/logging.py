"""Logging configuration for devlogspace.

Several agent processes usually append to the same log file, so every record
is tagged with the process id and, once a workspace is claimed, the agent id:

    09:14:02 info [4242 agent-250622025145]: Lock acquired by ...

Levels: error(0), warning(1), info(2), verbose(3), trace(4). Without a log
file (config or DEVLOG_LOG) records go to stderr, and only when stderr is a
console, since stdio may carry a protocol stream.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devlogspace.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("devlogspace")

_initialized = False

_LEVEL_MAP = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# --verbose N
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}

_FORMAT = "%(asctime)s %(levelname)s [%(process)d %(agent)s]: %(message)s"
_DATEFMT = "%H:%M:%S"


class _AgentFilter(logging.Filter):
    """Stamps records with the agent currently holding this process's session."""

    def __init__(self) -> None:
        super().__init__()
        self.agent = "-"

    def filter(self, record: logging.LogRecord) -> bool:
        record.agent = self.agent
        return True


_agent_filter = _AgentFilter()


class _Formatter(logging.Formatter):
    """Lowercase level names; tolerate records that bypassed the agent filter."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        if not hasattr(record, "agent"):
            record.agent = "-"
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick a log level from config; verbose (int) wins over level (str)."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY_MAP.get(config.verbose, TRACE)
    if config.level:
        return _LEVEL_MAP.get(config.level.upper(), logging.INFO)
    return logging.INFO


def set_log_agent(agent_id: str | None) -> None:
    """Tag subsequent records with agent_id (None clears the tag)."""
    _agent_filter.agent = agent_id or "-"


def _open_log_file(path: str) -> logging.Handler | None:
    try:
        return logging.FileHandler(os.path.expanduser(path), mode="a", encoding="utf-8")
    except OSError as e:
        if sys.stderr.isatty():
            print(f"[devlogspace] Failed to open log file {path}: {e}", file=sys.stderr)
        return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach handlers to the devlogspace logger.

    Call once at startup; later calls are no-ops. A log file that cannot be
    opened falls back to stderr when attached to a console.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    log_path = config.file if config and config.file else os.environ.get("DEVLOG_LOG")
    handler = _open_log_file(log_path) if log_path else None
    if handler is None:
        if not sys.stderr.isatty():
            return
        handler = logging.StreamHandler(sys.stderr)

    handler.setLevel(level)
    handler.addFilter(_agent_filter)
    handler.setFormatter(_Formatter(_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the devlogspace logger or one of its children ("lock", "heartbeat", ...)."""
    if name:
        return logger.getChild(name)
    return logger
