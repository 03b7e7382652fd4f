"""
Middleware components for request logging and error handling.
"""

import time
import traceback
from typing import Callable

from aiohttp import web

from hot_reload.core.exceptions import ApplicationError, ErrorCategory
from hot_reload.utils.logging_config import StructuredLogger, set_request_id, clear_request_id, get_request_id


class RequestLoggingMiddleware:
    """Middleware for logging HTTP requests and responses."""

    def __init__(self, enable_performance_logging: bool = True):
        self.enable_performance_logging = enable_performance_logging
        self.logger = StructuredLogger("request")

    @web.middleware
    async def __call__(self, request: web.Request, handler: Callable) -> web.StreamResponse:
        """Log request and response details."""
        request_id = set_request_id()
        start_time = time.monotonic()

        self.logger.debug(
            f"Incoming request: {request.method} {request.path}",
            method=request.method,
            path=request.path,
            remote_addr=request.remote,
            request_id=request_id
        )

        try:
            request['request_id'] = request_id
            response = await handler(request)
            duration = time.monotonic() - start_time

            if self.enable_performance_logging:
                self.logger.log_request_metrics(
                    method=request.method,
                    path=request.path,
                    status_code=response.status,
                    duration=duration
                )

            # WebSocket responses have already sent their headers
            if not response.prepared:
                response.headers['X-Request-ID'] = request_id

            return response

        except Exception as error:
            self.logger.error(
                f"Request failed: {request.method} {request.path}",
                method=request.method,
                path=request.path,
                error=str(error),
                error_type=type(error).__name__,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                request_id=request_id,
                exc_info=True
            )
            raise
        finally:
            clear_request_id()


class ErrorHandlingMiddleware:
    """Middleware for centralized error handling."""

    def __init__(self):
        self.logger = StructuredLogger("error_handler")

    @web.middleware
    async def __call__(self, request: web.Request, handler: Callable) -> web.StreamResponse:
        """Handle exceptions and return structured error responses."""
        try:
            return await handler(request)

        except ApplicationError as error:
            return self._create_error_response(error)

        except web.HTTPException as error:
            if error.status_code < 400:
                raise
            app_error = ApplicationError(
                message=error.reason or "HTTP error",
                category=ErrorCategory.NOT_FOUND if error.status_code == 404 else ErrorCategory.VALIDATION,
                status_code=error.status_code
            )
            return self._create_error_response(app_error)

        except Exception as error:
            self.logger.error(
                "Unhandled exception occurred",
                error=str(error),
                error_type=type(error).__name__,
                traceback=traceback.format_exc(),
                exc_info=True
            )

            app_error = ApplicationError(
                message="An unexpected error occurred",
                category=ErrorCategory.INTERNAL,
                details={"error_id": get_request_id()}
            )
            return self._create_error_response(app_error)

    def _create_error_response(self, error: ApplicationError) -> web.Response:
        """Create a JSON error response."""
        response_data = error.to_dict()

        request_id = get_request_id()
        if request_id:
            response_data["request_id"] = request_id

        return web.json_response(
            response_data,
            status=error.status_code
        )


def create_middleware_stack(enable_performance_logging: bool = True) -> list:
    """Create the complete middleware stack."""
    return [
        # Request logging (first to capture all requests)
        RequestLoggingMiddleware(enable_performance_logging).__call__,
        ErrorHandlingMiddleware().__call__,
    ]
