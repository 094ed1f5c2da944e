"""Structured JSON logging for collector runs.

Every record becomes one JSON object on stderr. The per-target keys that
the collector attaches through ``extra`` (``server``, ``protocol`` and
``error_type``) are lifted to the top level so failures can be filtered by
target without digging through ``context``.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from queue import Full, Queue
from typing import Iterable, TextIO, override
from uuid import uuid4

LOGGER = logging.getLogger(__name__)

TARGET_KEYS: tuple[str, ...] = ("server", "protocol", "error_type")

_RESERVED_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "run_id"}


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects tagged with a run identifier."""

    def __init__(self, *, default_run_id: str | None = None) -> None:
        super().__init__()
        self._default_run_id = default_run_id

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None) or self._default_run_id,
        }
        context: dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            if key in TARGET_KEYS:
                payload[key] = value
            else:
                context[key] = value
        payload["context"] = context

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, default=str)


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that drops records when the queue is full.

    Dropped records are counted in :attr:`dropped`.
    """

    def __init__(self, queue: Queue[logging.LogRecord]) -> None:
        super().__init__(queue)
        self.dropped = 0

    @override
    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.handleError(record)

    @override
    def handleError(self, record: logging.LogRecord) -> None:
        self.dropped += 1


def configure_structured_logging(
    logger: logging.Logger,
    *,
    run_id: str | None = None,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    queue_size: int = 1024,
) -> logging.handlers.QueueListener:
    """Route ``logger`` through a bounded queue to a JSON stream handler.

    Args:
        logger: Target logger to configure.
        run_id: Identifier attached to every record; a random one is
            generated when omitted.
        level: Logging verbosity level.
        stream: Output stream, ``sys.stderr`` by default.
        queue_size: Records held before new ones are dropped.

    Returns:
        The started queue listener responsible for draining log records.
    """

    logger.setLevel(level)

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=queue_size)
    logger.addHandler(BoundedQueueHandler(record_queue))

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(JsonFormatter(default_run_id=run_id or uuid4().hex))

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def detach_queue_handlers(logger: logging.Logger) -> int:
    """Remove every :class:`BoundedQueueHandler` from ``logger``.

    Returns:
        The number of records the removed handlers had to drop.
    """

    dropped = 0
    for handler in list(logger.handlers):
        if isinstance(handler, BoundedQueueHandler):
            dropped += handler.dropped
            logger.removeHandler(handler)
    return dropped


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Stop all queue listeners, logging rather than raising on failure."""

    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - logging teardown only
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
