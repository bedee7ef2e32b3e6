# crossroute/logging/logger.py
from __future__ import annotations

import logging
import sys
import time
from typing import Dict, Optional, Tuple

from crossroute.configuration.config import settings

APP_NAMESPACE = "crossroute"

_RESET = "\033[0m"
_DIM = "\033[2m"

# level name -> (emoji, ANSI color)
_LEVEL_STYLE: Dict[str, Tuple[str, str]] = {
    "DEBUG": ("🔍", "\033[36m"),
    "INFO": ("ℹ️", "\033[32m"),
    "WARNING": ("⚠️", "\033[33m"),
    "ERROR": ("❌", "\033[31m"),
    "CRITICAL": ("🛑", "\033[35m"),
}

# third-party logger -> Settings attribute holding its level
_LIBRARY_LEVELS = {
    "urllib3": "LOG_LEVEL_LIB_URLLIB3",
    "httpx": "LOG_LEVEL_LIB_HTTPX",
    "httpcore": "LOG_LEVEL_LIB_HTTPCORE",
    "web3": "LOG_LEVEL_LIB_WEB3",
    "asyncio": "LOG_LEVEL_LIB_ASYNCIO",
    "anyio": "LOG_LEVEL_LIB_ANYIO",
}

_WEB3_CHATTY = ("web3.providers", "web3.manager")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "uvicorn.asgi")
_HANDLER_MARKER = "_crossroute_console"


def _parse_level(value: Optional[str]) -> int:
    level = logging.getLevelName((value or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _namespaced(name: str) -> str:
    """Place a module logger under 'crossroute.*' unless it already is."""
    if name == APP_NAMESPACE or name.startswith(APP_NAMESPACE + "."):
        return name
    return f"{APP_NAMESPACE}.{name}"


class ColorFormatter(logging.Formatter):
    """
    One line per record: UTC timestamp, level emoji, padded level, logger name, message.

      2025-10-02 01:36:22.123+0000 ℹ️ INFO     crossroute.core.routing.aggregator - [ROUTE][AGGREGATE] quotes=3 failures=0

    Colors are applied only when ``use_color`` is set; tracebacks follow on the next lines.
    """

    def __init__(self, use_color: bool = True) -> None:
        super().__init__()
        self.use_color = use_color

    @staticmethod
    def _utc_stamp(record: logging.LogRecord) -> str:
        base = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(record.created))
        return f"{base}.{int(record.msecs):03d}+0000"

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname.upper()
        emoji, color = _LEVEL_STYLE.get(level, ("", ""))
        stamp = self._utc_stamp(record)
        text = record.getMessage()

        if self.use_color:
            rendered = f"{_DIM}{stamp}{_RESET} {color}{emoji} {level:<8}{_RESET} {record.name} {_DIM}- {text}{_RESET}"
        else:
            rendered = f"{stamp} {emoji} {level:<8} {record.name} - {text}"

        if record.exc_info:
            rendered += "\n" + self.formatException(record.exc_info)
        return rendered


def _ensure_console_handler(root: logging.Logger) -> logging.Handler:
    existing = next((h for h in root.handlers if getattr(h, _HANDLER_MARKER, False)), None)
    if existing is not None:
        existing.setLevel(logging.NOTSET)
        return existing

    handler = logging.StreamHandler(stream=sys.stderr)
    setattr(handler, _HANDLER_MARKER, True)
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(ColorFormatter(use_color=sys.stderr.isatty() and not settings.NO_COLOR))
    root.addHandler(handler)
    return handler


def init_logging() -> None:
    """Configure the root console handler and the per-library levels from settings. Safe to call twice."""
    root = logging.getLogger()
    root.setLevel(_parse_level(settings.LOG_LEVEL))
    _ensure_console_handler(root)

    logging.getLogger(APP_NAMESPACE).setLevel(_parse_level(settings.LOG_LEVEL_CROSSROUTE))
    for library, attribute in _LIBRARY_LEVELS.items():
        logging.getLogger(library).setLevel(_parse_level(getattr(settings, attribute)))

    # web3 logs every provider request at DEBUG
    web3_level = _parse_level(settings.LOG_LEVEL_LIB_WEB3)
    for name in _WEB3_CHATTY:
        chatty = logging.getLogger(name)
        chatty.setLevel(web3_level)
        chatty.handlers.clear()
        chatty.propagate = False

    # uvicorn goes through the root handler so every line shares one format
    for name in _UVICORN_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.setLevel(_parse_level(settings.LOG_LEVEL))
        server_logger.propagate = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(_namespaced(name or __name__))
    logger.propagate = True
    return logger
