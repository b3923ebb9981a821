"""Logging utilities for cmdguard."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


_LOG_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "asctime",
    "stacklevel",
    "taskName",
}

LOG_LEVEL_ENV = "CMDGUARD_LOG_LEVEL"


class StructuredFormatter(logging.Formatter):
    """Formatter with UTC ISO timestamps and the record's ``extra`` fields."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _LOG_RECORD_FIELDS and not key.startswith("_")
        }
        if extras:
            try:
                serialized = json.dumps(extras, sort_keys=True, ensure_ascii=True, default=str)
            except (TypeError, ValueError):
                serialized = str(extras)
            return f"{message} | {serialized}"
        return message


class GuardLogger:
    """Logger for cmdguard.

    Console output goes to stderr so that stdout stays reserved for hook
    responses and ``--json`` output.
    """

    def __init__(self, name: str = "cmdguard", log_dir: Optional[Path] = None):
        self.logger = logging.getLogger(name)
        level_name = os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
        level = getattr(logging, level_name, logging.WARNING)
        # File handlers capture debug output; the console honours the configured level.
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        if not self.logger.handlers:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level)
            console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            self.logger.addHandler(console_handler)

        self._file_handler: Optional[logging.Handler] = None
        self._file_handler_path: Optional[Path] = None

        if log_dir:
            log_file = log_dir / f"cmdguard_{datetime.now().strftime('%Y%m%d')}.log"
            self.attach_file_handler(log_file)

    def attach_file_handler(self, log_file: Path) -> Path:
        """Attach or replace the file handler used for structured logs."""
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if self._file_handler and self._file_handler_path == log_file:
            return log_file

        self.detach_file_handler()

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter("%(asctime)s [%(levelname)s] %(message)s"))
        self.logger.addHandler(file_handler)
        self._file_handler = file_handler
        self._file_handler_path = log_file
        return log_file

    def detach_file_handler(self) -> None:
        if self._file_handler is None:
            return
        self.logger.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None
        self._file_handler_path = None

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        self.logger.exception(message, *args, **kwargs)


def match_extra(match: Any, **fields: Any) -> Dict[str, Any]:
    """Build the ``extra=`` fields that describe a pattern match.

    ``match`` is a ``PatternMatch`` or anything else exposing ``pack_id``,
    ``pattern_name`` and ``severity``. ``None`` values are left out so
    config-override matches log without empty rule fields.
    """
    pack_id = getattr(match, "pack_id", None)
    pattern_name = getattr(match, "pattern_name", None)
    severity = getattr(match, "severity", None)
    extra: Dict[str, Any] = {
        "rule_id": f"{pack_id}:{pattern_name}" if pack_id and pattern_name else None,
        "pack_id": pack_id,
        "severity": getattr(severity, "value", severity),
    }
    extra.update(fields)
    return {key: value for key, value in extra.items() if value is not None}


# Global logger instance
_logger: Optional[GuardLogger] = None


def get_logger() -> GuardLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = GuardLogger()
    return _logger


def init_logger(log_dir: Optional[Path] = None) -> GuardLogger:
    """Initialize the global logger, optionally writing to ``log_dir``."""
    global _logger
    # The stdlib logger is shared, so drop the old file handler before replacing.
    if _logger is not None:
        _logger.detach_file_handler()
    _logger = GuardLogger(log_dir=log_dir)
    return _logger
