"""
Error handling middleware for Order Service.
Maps the order exception taxonomy onto standardized error responses.
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...services.exceptions import (
    AccessDeniedError,
    InfrastructureError,
    OrderConflictError,
    OrderNotFoundError,
    OrderServiceError,
    OrderValidationError,
)
from ...utils.logging import setup_order_logging

logger = setup_order_logging("order_service_error_handler")

# Most specific first; the first matching class decides the status code
STATUS_CODES: List[Tuple[Type[OrderServiceError], int]] = [
    (OrderValidationError, 400),
    (AccessDeniedError, 403),
    (OrderNotFoundError, 404),
    (OrderConflictError, 409),
    (InfrastructureError, 500),
]

INTERNAL_ERROR_MESSAGE = "An internal server error occurred"


def status_code_for(exc: OrderServiceError) -> int:
    for exc_class, status_code in STATUS_CODES:
        if isinstance(exc, exc_class):
            return status_code
    return 500


class OrderServiceErrorHandler:
    """
    Centralized error handling for Order Service.

    Features:
    - Standardized error response format
    - Order error taxonomy to HTTP status mapping
    - Correlation ID tracking
    - Opaque messages for infrastructure failures
    """

    @staticmethod
    def setup_error_handlers(app: FastAPI) -> None:
        """
        Setup all error handlers for the FastAPI application.
        """

        @app.exception_handler(OrderServiceError)
        async def order_service_error_handler(
            request: Request, exc: OrderServiceError
        ) -> JSONResponse:
            """Handle errors raised by the orchestrator and state machine."""
            status_code = status_code_for(exc)

            if status_code >= 500:
                logger.error(
                    f"Order service failure: {exc.message}",
                    extra={
                        "correlation_id": getattr(
                            request.state, "correlation_id", "unknown"
                        ),
                        "path": request.url.path,
                        "method": request.method,
                        "exception_type": type(exc).__name__,
                        "details": exc.details,
                        "event_type": "infrastructure_error",
                    },
                )
                return OrderServiceErrorHandler._create_error_response(
                    request=request,
                    status_code=status_code,
                    error_type=InfrastructureError.error_type,
                    message=INTERNAL_ERROR_MESSAGE,
                )

            return OrderServiceErrorHandler._create_error_response(
                request=request,
                status_code=status_code,
                error_type=exc.error_type,
                message=exc.message,
                details=exc.details,
            )

        @app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(
            request: Request, exc: StarletteHTTPException
        ) -> JSONResponse:
            """Handle HTTP exceptions from Starlette/FastAPI."""
            return OrderServiceErrorHandler._create_error_response(
                request=request,
                status_code=exc.status_code,
                error_type="http_error",
                message=str(exc.detail),
                details={"path": request.url.path, "method": request.method},
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ) -> JSONResponse:
            """Handle request body / path / query validation errors."""
            error_details: List[Dict[str, Any]] = []
            for error in exc.errors():
                error_details.append(
                    {
                        "field": ".".join(str(loc) for loc in error["loc"]),
                        "message": error["msg"],
                        "type": error["type"],
                    }
                )

            return OrderServiceErrorHandler._create_error_response(
                request=request,
                status_code=400,
                error_type=OrderValidationError.error_type,
                message="Request validation failed",
                details={"validation_errors": error_details},
            )

        @app.exception_handler(Exception)
        async def general_exception_handler(
            request: Request, exc: Exception
        ) -> JSONResponse:
            """Handle anything that escaped the taxonomy."""
            logger.error(
                "Unhandled exception occurred",
                extra={
                    "correlation_id": getattr(
                        request.state, "correlation_id", "unknown"
                    ),
                    "user_id": getattr(request.state, "user_id", "anonymous"),
                    "path": request.url.path,
                    "method": request.method,
                    "exception_type": type(exc).__name__,
                    "exception_message": str(exc),
                    "traceback": traceback.format_exc(),
                    "event_type": "unhandled_exception",
                },
                exc_info=True,
            )

            return OrderServiceErrorHandler._create_error_response(
                request=request,
                status_code=500,
                error_type="internal_server_error",
                message=INTERNAL_ERROR_MESSAGE,
            )

    @staticmethod
    def _create_error_response(
        request: Request,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """
        Create a standardized error response.

        Args:
            request: The FastAPI request object
            status_code: HTTP status code
            error_type: Type of error for categorization
            message: Human-readable error message
            details: Additional error details

        Returns:
            JSONResponse with standardized error format
        """
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        user_id = getattr(request.state, "user_id", "anonymous")

        error_response: Dict[str, Any] = {
            "error": {
                "type": error_type,
                "message": message,
                "details": details or {},
                "correlation_id": correlation_id,
                "user_id": user_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        }

        if status_code < 500:
            logger.warning(
                f"Client error: {error_type}",
                extra={
                    "correlation_id": correlation_id,
                    "user_id": user_id,
                    "status_code": status_code,
                    "error_type": error_type,
                    "path": request.url.path,
                    "method": request.method,
                    "event_type": "client_error",
                },
            )

        return JSONResponse(status_code=status_code, content=error_response)


def setup_order_error_handling(app: FastAPI) -> None:
    """
    Convenience function to setup error handling for Order Service.

    Args:
        app: FastAPI application instance
    """
    error_handler = OrderServiceErrorHandler()
    error_handler.setup_error_handlers(app)

    logger.info(
        "Order Service error handling configured",
        extra={"event_type": "error_handler_setup"},
    )
