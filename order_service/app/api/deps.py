"""
FastAPI dependency injection for Order Service

Provides the process-wide orchestrator and the caller identity set by the
auth middleware.
"""

from typing import Optional

from fastapi import Depends, Request

from ..middleware.auth import AuthenticatedUser, admin_user, authenticated_user
from ..services.exceptions import InfrastructureError
from ..services.order_service import OrderOrchestrator

# =====================================================
# SERVICE DEPENDENCIES
# =====================================================


def get_orchestrator(request: Request) -> OrderOrchestrator:
    """Provide the OrderOrchestrator built at startup"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise InfrastructureError("Order orchestrator not initialized")
    return orchestrator


# =====================================================
# AUTHENTICATION & REQUEST CONTEXT DEPENDENCIES
# =====================================================


def get_correlation_id(request: Request) -> Optional[str]:
    """Extract correlation ID from request headers or state"""
    correlation_id = (
        request.headers.get("X-Correlation-ID")
        or request.headers.get("correlation-id")
        or request.headers.get("x-request-id")
    )

    if not correlation_id:
        correlation_id = getattr(request.state, "correlation_id", None)

    return correlation_id


# =====================================================
# COMMON DEPENDENCY ALIASES
# =====================================================

CorrelationIdDep = Depends(get_correlation_id)
CurrentUserDep = Depends(authenticated_user)
AdminUserDep = Depends(admin_user)
OrchestratorDep = Depends(get_orchestrator)

__all__ = [
    "AuthenticatedUser",
    "AdminUserDep",
    "CorrelationIdDep",
    "CurrentUserDep",
    "OrchestratorDep",
    "get_correlation_id",
    "get_orchestrator",
]
