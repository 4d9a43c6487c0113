from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from types import TracebackType
from typing import Any, Dict, Iterator, Optional

ROOT_LOGGER_NAME = "barberflow"

_LEVEL_SYMBOLS: Dict[int, str] = {
    logging.DEBUG: "(?)",
    logging.INFO: "(*)",
    logging.WARNING: "(!)",
    logging.ERROR: "(x)",
    logging.CRITICAL: "(X)",
}

# Field names whose values never reach a log sink.
_REDACTED_FIELDS = frozenset({"token", "plaintext", "cookie", "session_token", "secret"})
_PHONE_FIELDS = frozenset({"phone", "customer_phone"})

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def mask_phone(value: Any) -> str:
    digits = str(value)
    if len(digits) <= 4:
        return "*" * len(digits)
    return f"{'*' * (len(digits) - 4)}{digits[-4:]}"


def _scrub(fields: Dict[str, Any]) -> Dict[str, Any]:
    scrubbed: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in _REDACTED_FIELDS:
            scrubbed[key] = "[redacted]"
        elif key in _PHONE_FIELDS and value is not None:
            scrubbed[key] = mask_phone(value)
        else:
            scrubbed[key] = value
    return scrubbed


class _LineFormatter(logging.Formatter):
    """Render records as `date time | LEVEL | category | (*) event | message | k: v`."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        head = [
            created.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
            f"{record.levelname:<8}",
            str(getattr(record, "category", record.name)),
        ]

        symbol = getattr(record, "symbol", _LEVEL_SYMBOLS.get(record.levelno, "(?)"))
        event = getattr(record, "event", "")
        fields = dict(getattr(record, "fields", {}))
        message = record.getMessage()

        if event == "operation.step":
            head.append(f"{symbol} >> {fields.pop('step', 'step')}")
        else:
            head.append(f"{symbol} {event or message}")
        if event and message:
            head.append(message)

        line = " | ".join(head + [f"{key}: {value}" for key, value in fields.items()])
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


@dataclass(frozen=True)
class Operation:
    """Timed unit of work logged as start, steps and one terminal line.

    Exceptions flagged `expected` (booking protocol errors) end the operation
    with a `operation.reject` warning instead of a traceback.
    """

    logger: "BoundLogger"
    name: str
    message: str
    fields: Dict[str, Any]
    start_time: float = 0.0

    async def __aenter__(self) -> "Operation":
        object.__setattr__(self, "start_time", perf_counter())
        self.logger.info("operation.start", self.message, operation=self.name, **self.fields)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        elapsed = {
            "operation": self.name,
            "duration_ms": round((perf_counter() - self.start_time) * 1000, 1),
        }
        if exc_type is None:
            self.logger.info("operation.complete", "Completed", **elapsed)
        elif getattr(exc, "expected", False):
            self.logger.warning(
                "operation.reject", str(exc), error_type=exc_type.__name__, **elapsed
            )
        else:
            self.logger.exception(
                "operation.error", "Failed", error_type=exc_type.__name__, **elapsed
            )

    def step(self, name: str, message: str, **fields: Any) -> None:
        self.logger.info("operation.step", message, operation=self.name, step=name, **fields)


class BoundLogger:
    def __init__(self, category: str) -> None:
        self._category = category

    @contextmanager
    def context(self, **fields: Any) -> Iterator[None]:
        """Attach `fields` to every record logged in this task until exit."""
        token = _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **fields})
        try:
            yield
        finally:
            _LOG_CONTEXT.reset(token)

    def operation(self, name: str, message: str, **fields: Any) -> Operation:
        return Operation(self, name=name, message=message, fields=fields)

    def debug(self, event: str, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, message, fields)

    def info(self, event: str, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, message, fields)

    def warning(self, event: str, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, message, fields)

    def exception(self, event: str, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, message, fields, exc_info=True)

    def _emit(
        self,
        severity: int,
        event: str,
        message: str,
        fields: Dict[str, Any],
        *,
        exc_info: Any = None,
    ) -> None:
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        if not logger.isEnabledFor(severity):
            return
        logger.log(
            severity,
            message,
            extra={
                "category": self._category,
                "event": event,
                "symbol": _LEVEL_SYMBOLS.get(severity, "(?)"),
                "fields": _scrub({**_LOG_CONTEXT.get(), **fields}),
            },
            exc_info=exc_info,
        )


def configure_logging(log_level: str, log_file: Optional[str]) -> None:
    """Send app and uvicorn records to stderr and, when set, `log_file`."""
    formatter = _LineFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    for logger in (logging.getLogger(), logging.getLogger(ROOT_LOGGER_NAME)):
        logger.setLevel(log_level)
        logger.handlers[:] = handlers
    logging.getLogger(ROOT_LOGGER_NAME).propagate = False

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True


def get_logger(category: str) -> BoundLogger:
    return BoundLogger(category)
