"""
Custom exception classes for the hot reload notifier and listener.
Provides structured error responses and categorized exceptions.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for better classification and handling."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STARTUP = "startup"
    INTERNAL = "internal"


class ApplicationError(Exception):
    """Base exception class for application-specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        error_dict = {
            "error": {
                "message": self.message,
                "category": self.category.value,
                "status_code": self.status_code,
                "details": self.details
            }
        }

        if self.original_error:
            error_dict["error"]["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error)
            }

        return error_dict


class StartupError(ApplicationError):
    """Raised when the notifier cannot start. Always fatal."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.STARTUP,
            status_code=500,
            details=details,
            original_error=original_error
        )


class WatchRootError(StartupError):
    """Raised when the watch root is missing or is not a directory."""

    def __init__(self, path: str, reason: str = "does not exist", original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Watch root {path} {reason}",
            details={"watch_root": path},
            original_error=original_error
        )
        self.path = path


class PortInUseError(StartupError):
    """Raised when the notifier cannot bind its listening socket."""

    def __init__(self, host: str, port: int, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Cannot listen on {host}:{port}",
            details={"host": host, "port": port},
            original_error=original_error
        )
        self.host = host
        self.port = port
