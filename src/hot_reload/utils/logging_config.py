"""
Logging configuration for the notifier and listener processes.
Provides plain or structured JSON logging, request correlation and timing helpers.
"""

import logging
import logging.handlers
import json
import time
import uuid
import sys
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar
from pathlib import Path

from hot_reload.core.config import LoggingConfig

# Context variable for request correlation
request_id_context: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class PerformanceLogger:
    """Logger for timing metrics."""

    def __init__(self, logger_name: str = "performance"):
        self.logger = logging.getLogger(logger_name)

    def log_duration(self, operation: str, duration: float, **extra_fields):
        """Log operation duration."""
        self.logger.debug(
            f"Operation completed: {operation}",
            extra={
                "operation": operation,
                "duration_ms": round(duration * 1000, 2),
                "metric_type": "duration",
                **extra_fields
            }
        )


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self, operation: str, logger: Optional[PerformanceLogger] = None, **extra_fields):
        self.operation = operation
        self.logger = logger or PerformanceLogger()
        self.extra_fields = extra_fields
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self.start_time
        status = "error" if exc_type else "success"
        self.logger.log_duration(
            self.operation,
            self.duration,
            status=status,
            **self.extra_fields
        )


def setup_logging(config: LoggingConfig) -> None:
    """Setup application logging configuration."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if config.format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(config.level)

    handlers = [console_handler]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(config.level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=config.level,
        handlers=handlers,
        force=True
    )

    # Disable overly verbose loggers
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured with level {config.level} and format {config.format}")


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context for correlation."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_context.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_context.get()


def clear_request_id() -> None:
    """Clear request ID from context."""
    request_id_context.set(None)


class StructuredLogger:
    """Logger with keyword extra fields."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.performance = PerformanceLogger(f"{name}.performance")

    def debug(self, message: str, **extra):
        self.logger.debug(message, extra=extra)

    def info(self, message: str, **extra):
        self.logger.info(message, extra=extra)

    def warning(self, message: str, **extra):
        self.logger.warning(message, extra=extra)

    def error(self, message: str, exc_info=None, **extra):
        """Log error message with extra fields and optional exception info."""
        self.logger.error(message, exc_info=exc_info, extra=extra)

    def timing_context(self, operation: str, **extra) -> TimingContext:
        """Create a timing context for measuring operation duration."""
        return TimingContext(operation, self.performance, **extra)

    def log_request_metrics(self, method: str, path: str, status_code: int, duration: float, **extra):
        """Log HTTP request metrics."""
        self.performance.log_duration(
            "http_request",
            duration,
            method=method,
            path=path,
            status_code=status_code,
            **extra
        )
