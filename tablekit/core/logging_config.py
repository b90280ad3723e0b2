"""
Logging infrastructure for tablekit.

Every commit runs inside a correlation scope, so all records emitted while
it dispatches operations (retries, per-operation failures, transaction
counts) share one id. Handlers redact storage credentials before output.
"""

import json
import logging
import logging.handlers
import re
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from .config_manager import LoggingConfig

correlation_id: ContextVar[Optional[str]] = ContextVar("tablekit_correlation_id", default=None)

NO_CORRELATION = "-"


class SensitiveDataFilter(logging.Filter):
    """Redact account keys and signatures that appear in service errors."""

    PATTERNS = [
        (re.compile(r"(Authorization:\s+)(?:SharedKey\s+|Bearer\s+)?\S+", re.IGNORECASE), r"\1***REDACTED***"),
        (re.compile(r"(AccountKey=)[^;]+", re.IGNORECASE), r"\1***REDACTED***"),
        (re.compile(r"(SharedAccessSignature=)[^;&]+", re.IGNORECASE), r"\1***REDACTED***"),
        (re.compile(r"(sig=)[^;&]+", re.IGNORECASE), r"\1***REDACTED***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            for pattern, replacement in self.PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True


class CorrelationFilter(logging.Filter):
    """Stamp each record with the id of the commit that emitted it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or NO_CORRELATION
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }

        corr_id = getattr(record, "correlation_id", None) or correlation_id.get()
        if corr_id and corr_id != NO_CORRELATION:
            entry["correlation_id"] = corr_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "context"):
            entry["context"] = record.context

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format with the commit id after the level."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def _build_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationFilter())
    handler.addFilter(SensitiveDataFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[str] = None,
    rotation_size: str = "10MB",
    rotation_count: int = 5,
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configure the root logger for an application using tablekit.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "json" or "text"
        log_file: Optional file path; output rotates by size
        rotation_size: Size limit per file, e.g. "10MB"
        rotation_count: Number of rotated files to keep
        module_levels: Per-logger levels, e.g. {"tablekit.table.context": "DEBUG"}
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    formatter = JSONFormatter() if format_type == "json" else TextFormatter()

    root_logger.addHandler(_build_handler(logging.StreamHandler(sys.stdout), formatter))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=_parse_size(rotation_size),
            backupCount=rotation_count,
            encoding="utf-8"
        )
        root_logger.addHandler(_build_handler(file_handler, formatter))
        root_logger.info(f"Logging to file: {log_file} (rotation: {rotation_size}, count: {rotation_count})")

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.upper()))
        root_logger.info(f"Module '{module_name}' log level set to {module_level}")

    root_logger.info(f"Logging configured: level={level}, format={format_type}")


def configure_logging(config: LoggingConfig) -> None:
    """Apply the ``logging`` section of a loaded configuration."""
    level = config.level.value if hasattr(config.level, "value") else config.level
    setup_logging(
        level=level,
        format_type=config.format,
        log_file=config.file,
        rotation_size=config.rotation_size,
        rotation_count=config.rotation_count,
        module_levels=config.module_levels,
    )


def _parse_size(size_str: str) -> int:
    """Parse a size such as "10MB" or "512" into bytes."""
    size_str = size_str.upper().strip()

    # longest suffix first
    for suffix, multiplier in (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024), ("B", 1)):
        if size_str.endswith(suffix):
            return int(float(size_str[:-len(suffix)].strip()) * multiplier)

    return int(size_str)


@contextmanager
def correlation_scope(corr_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation id for the duration of the block.

    A fresh id is generated when none is given. The previous id is restored
    on exit, so nested scopes behave.
    """
    corr_id = corr_id or uuid.uuid4().hex
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log ``message`` with keyword context attached as ``record.context``."""
    extra = {"context": context} if context else {}
    logger.log(level, message, extra=extra)
