from __future__ import annotations

import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import Any

import structlog


_CONFIGURED = False

ACCESS_LOGGER_NAME = "website.access"

_access_queue: queue.Queue[logging.LogRecord] | None = None
_access_listener: QueueListener | None = None


def _set_levels(level: int) -> None:
    logging.getLogger().setLevel(level)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)


def configure_logging(level: int = logging.INFO) -> None:
    """Render application logs (structlog events and stdlib records alike) as JSON on stdout.

    The access log never passes through here; it goes to its own file via
    :func:`configure_access_log`. Repeat calls only adjust the level, so logging can be set up
    before settings are read and raised to DEBUG afterwards.
    """

    global _CONFIGURED
    if _CONFIGURED:
        _set_levels(level)
        return

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.getLogger().handlers = [handler]
    # uvicorn installs its own handlers; route its error and access loggers to stdout JSON too.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False
    _set_levels(level)

    _CONFIGURED = True


def configure_access_log(path: Path) -> logging.Logger:
    """Point the access logger at ``path``, creating the parent directory if needed.

    The file is opened here, so an unusable path raises OSError at startup. Request handlers
    only enqueue lines; a background listener thread does the file writes.
    """

    global _access_queue, _access_listener

    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(message)s"))

    close_access_log()

    _access_queue = queue.Queue()
    _access_listener = QueueListener(_access_queue, file_handler)
    _access_listener.start()

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers = [QueueHandler(_access_queue)]
    access_logger.propagate = False
    access_logger.setLevel(logging.INFO)
    return access_logger


def flush_access_log() -> None:
    """Block until every queued access line has been written."""

    if _access_queue is None or _access_listener is None:
        return
    _access_queue.join()
    for handler in _access_listener.handlers:
        handler.flush()


def close_access_log() -> None:
    global _access_queue, _access_listener

    if _access_listener is not None:
        _access_listener.stop()
        for handler in _access_listener.handlers:
            handler.close()
    _access_queue = None
    _access_listener = None

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    for handler in access_logger.handlers:
        handler.close()
    access_logger.handlers = []
