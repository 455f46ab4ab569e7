"""
Caller identity middleware for Order Service.

The gateway authenticates the user and forwards the identity in the
``x-user-id``, ``x-user-role`` and ``x-user-email`` headers; this middleware
lifts them into ``request.state`` for the route dependencies.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ...services.exceptions import AccessDeniedError
from ...utils.logging import setup_order_logging

logger = setup_order_logging("order_service_auth")

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"
USER_EMAIL_HEADER = "x-user-email"

ROLE_ADMIN = "admin"
ROLE_CLIENT = "client"
VALID_ROLES = {ROLE_ADMIN, ROLE_CLIENT}


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    role: str = ROLE_CLIENT
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def ensure_owner(self, client_id: str, message: str) -> None:
        """Clients may only act on their own orders; admins on any"""
        if not self.is_admin and client_id != self.user_id:
            raise AccessDeniedError(
                message, details={"user_id": self.user_id, "client_id": client_id}
            )


class OrderServiceAuthMiddleware(BaseHTTPMiddleware):
    """
    Authentication middleware for Order Service.

    Features:
    - Caller identity extraction from gateway headers
    - Role validation (admin | client, client by default)
    - Request authentication logging
    """

    def __init__(self, app: Any, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/api/v1/orders/health",
        ]

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """
        Process authentication for each request.
        """
        if self._should_skip_auth(request.url.path):
            return await call_next(request)

        correlation_id = self._correlation_id(request)
        request.state.correlation_id = correlation_id

        auth_result = self._authenticate_request(request)
        if not auth_result["authenticated"]:
            logger.warning(
                f"Authentication failed: {auth_result['reason']}",
                extra={
                    "correlation_id": correlation_id,
                    "path": request.url.path,
                    "method": request.method,
                    "reason": auth_result["reason"],
                    "event_type": "auth_failed",
                },
            )
            return JSONResponse(
                status_code=401,
                content={
                    "error": {
                        "type": "authentication_error",
                        "message": "Authentication required",
                        "correlation_id": correlation_id,
                        "details": {"reason": auth_result["reason"]},
                    }
                },
            )

        user: AuthenticatedUser = auth_result["user"]
        request.state.user = user
        request.state.user_id = user.user_id
        request.state.user_role = user.role

        logger.info(
            "Request authenticated",
            extra={
                "correlation_id": correlation_id,
                "user_id": user.user_id,
                "user_role": user.role,
                "path": request.url.path,
                "method": request.method,
                "event_type": "auth_success",
            },
        )
        return await call_next(request)

    def _should_skip_auth(self, path: str) -> bool:
        """
        Check if authentication should be skipped for this path.
        """
        for exclude_path in self.exclude_paths:
            if path == exclude_path or path.startswith(exclude_path):
                return True
        return False

    @staticmethod
    def _correlation_id(request: Request) -> str:
        return (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("x-request-id")
            or getattr(request.state, "correlation_id", None)
            or "unknown"
        )

    def _authenticate_request(self, request: Request) -> Dict[str, Any]:
        """
        Build the caller from the identity headers.

        Returns:
            Dict with authentication result
        """
        user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
        if not user_id:
            return {"authenticated": False, "reason": "missing_user_id"}

        role = (request.headers.get(USER_ROLE_HEADER) or ROLE_CLIENT).strip().lower()
        if role not in VALID_ROLES:
            return {"authenticated": False, "reason": "invalid_user_role"}

        email = (request.headers.get(USER_EMAIL_HEADER) or "").strip()
        return {
            "authenticated": True,
            "user": AuthenticatedUser(user_id=user_id, role=role, email=email),
        }


def authenticated_user(request: Request) -> AuthenticatedUser:
    """Dependency: the caller set by the middleware"""
    user = getattr(request.state, "user", None)
    if user is None:
        raise AccessDeniedError("Información de autenticación faltante")
    return user


def admin_user(request: Request) -> AuthenticatedUser:
    """Dependency: the caller, who must be an admin"""
    user = authenticated_user(request)
    if not user.is_admin:
        raise AccessDeniedError(
            "Solo administradores pueden realizar esta acción",
            details={"user_id": user.user_id, "role": user.role},
        )
    return user


def setup_order_auth_middleware(
    app: FastAPI, exclude_paths: Optional[list[str]] = None
) -> None:
    """
    Convenience function to setup authentication middleware for Order Service.
    """
    app.add_middleware(OrderServiceAuthMiddleware, exclude_paths=exclude_paths)

    logger.info(
        "Order Service authentication middleware configured",
        extra={"event_type": "auth_middleware_setup"},
    )
