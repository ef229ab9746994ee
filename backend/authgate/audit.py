"""
AuthGate — Audit Log Entries and Sink
======================================

What:  The record type written for every audited request event, and the
       process-wide sink that writes those records to the console and to an
       append-only file.
Why:   The audit trail (who called what, with which body, and what we replied)
       is a separate stream from application logs: it has its own line format,
       its own file, and must never interfere with request handling.
Who:   Written by AuditInterceptorMiddleware; owned by the application lifespan
       (init on startup, shutdown on exit).

Line Format:
    [2024-01-15T12:00:00.000Z] [POST] /api/auth/login - IP: 127.0.0.1 - Body: {"email":"a@b.c"}

Write Path:
    interceptor ──emit()──▶ QueueHandler ──queue──▶ QueueListener thread
                                                     ├── StreamHandler (stdout)
                                                     └── FileHandler (append)

    emit() formats the line and enqueues it; it never waits for I/O. The
    listener thread is the only writer, so each line lands in the file whole
    even when many requests log at once.
"""

import enum
import json
import logging
import logging.handlers
import queue
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional

from authgate.config import settings

logger = logging.getLogger(__name__)

UNSERIALIZABLE = "<unserializable>"
REDACTED = "[REDACTED]"


class AuditTag(str, enum.Enum):
    """Which part of the request lifecycle an entry describes."""

    PARAMS = "Params"
    BODY = "Body"
    RESPONSE = "Response"


def utc_timestamp() -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a `Z` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def serialize_payload(payload: Any) -> str:
    """
    Render a payload as compact JSON text.

    Strings are quoted (`"ok"`), mappings and lists are rendered without
    whitespace. Objects JSON has no type for (datetimes, UUIDs) fall back to
    their str(). Anything that still cannot be rendered, such as a cyclic
    structure, yields `<unserializable>` instead of raising.
    """
    try:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError, RecursionError):
        return UNSERIALIZABLE


def redact(payload: Any, fields: Iterable[str]) -> Any:
    """
    Return a copy of `payload` with the values of the named keys masked.

    Nested mappings and lists are walked; the input is never modified.
    """
    names = {name.lower() for name in fields}
    if not names:
        return payload

    def _walk(value: Any, depth: int) -> Any:
        if depth > 32:
            return value
        if isinstance(value, dict):
            return {
                k: REDACTED if str(k).lower() in names else _walk(v, depth + 1)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_walk(item, depth + 1) for item in value]
        return value

    return _walk(payload, 0)


@dataclass(frozen=True)
class LogEntry:
    """
    One audited event in a request's lifecycle.

    Immutable: built once by the interceptor and handed to the sink.
    """

    method: str
    path: str
    client_address: str
    tag: AuditTag
    payload: Any
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def prefix(self) -> str:
        return f"[{self.method}] {self.path} - IP: {self.client_address}"

    def render(self) -> str:
        """Format the entry as a single sink line."""
        return (
            f"[{self.timestamp}] {self.prefix} - "
            f"{self.tag.value}: {serialize_payload(self.payload)}"
        )


class AppendFileHandler(logging.FileHandler):
    """
    FileHandler whose lazy open is covered by handleError().

    The stock handler opens a delayed stream outside its error guard, so an
    unwritable path would raise inside the queue listener thread.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)


class AuditSink:
    """
    Process-wide destination for audit entries (console + append-only file).

    Lifecycle:
        sink = AuditSink("app.log")
        sink.init()        # attach handlers, start the writer thread
        sink.emit(entry)   # from any request, never raises
        sink.shutdown()    # drain pending lines, close the file

    Entries emitted before init() or after shutdown() are dropped.

    Failure handling:
        The log file is opened lazily on the first write. If it cannot be
        opened or written (missing permissions, disk full), the FileHandler
        reports the failure through logging's standard error channel on
        stderr; the console destination keeps working and the caller of
        emit() never sees an exception.
    """

    def __init__(
        self,
        log_file: Optional[str] = "app.log",
        console: bool = True,
        logger_name: str = "authgate.audit",
    ):
        self.log_file = log_file
        self.console = console
        self._logger = logging.getLogger(logger_name)
        # Audit lines have their own format and file; keep them out of the root logger
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)
        self._queue_handler: Optional[logging.handlers.QueueHandler] = None
        self._listener: Optional[logging.handlers.QueueListener] = None
        self._handlers: List[logging.Handler] = []

    @property
    def active(self) -> bool:
        return self._listener is not None

    def init(self) -> None:
        """Attach the console/file handlers and start the writer thread."""
        if self.active:
            return

        formatter = logging.Formatter("%(message)s")
        handlers: List[logging.Handler] = []

        if self.console:
            handlers.append(logging.StreamHandler(sys.stdout))

        if self.log_file:
            try:
                Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning("Cannot create audit log directory for %s: %s", self.log_file, e)
            # delay=True: open on first write so an unwritable path surfaces
            # as a handler error instead of failing startup
            handlers.append(
                AppendFileHandler(self.log_file, mode="a", encoding="utf-8", delay=True)
            )

        for handler in handlers:
            handler.setFormatter(formatter)

        log_queue: "queue.SimpleQueue[logging.LogRecord]" = queue.SimpleQueue()
        self._queue_handler = logging.handlers.QueueHandler(log_queue)
        self._listener = logging.handlers.QueueListener(log_queue, *handlers)
        self._handlers = handlers

        self._logger.addHandler(self._queue_handler)
        self._listener.start()
        logger.info(
            "Audit sink started (console=%s, file=%s)", self.console, self.log_file or "-"
        )

    def emit(self, entry: LogEntry) -> None:
        """Queue one entry for writing. Never raises."""
        if not self.active:
            return
        try:
            self._logger.info(
                "%s",
                entry.render(),
                extra={
                    "audit_tag": entry.tag.value,
                    "method": entry.method,
                    "path": entry.path,
                    "client_ip": entry.client_address,
                },
            )
        except Exception as e:
            logger.warning("Dropped audit entry for %s: %s", entry.prefix, e)

    def shutdown(self) -> None:
        """Flush pending entries and release the file handle."""
        if not self.active:
            return

        self._listener.stop()
        self._logger.removeHandler(self._queue_handler)
        for handler in self._handlers:
            handler.close()

        self._listener = None
        self._queue_handler = None
        self._handlers = []


# Process-wide instance; create_app() injects it into the interceptor
audit_sink = AuditSink(log_file=settings.audit_log_file, console=settings.audit_console)
