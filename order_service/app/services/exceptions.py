"""
Order Service exceptions.

Raised by the orchestrator, the state machine and the broker client. The
error handler middleware maps each category to a response; the broker
supervisor only ever sees them as handler failures.
"""

from typing import Any, Dict, List, Optional


class OrderServiceError(Exception):
    """Base class for every error raised by the Order Service core"""

    error_type = "order_service_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Validation: caller-correctable, nothing was mutated


class OrderValidationError(OrderServiceError):
    """Malformed or missing input"""

    error_type = "validation_error"


class InvalidTransitionError(OrderValidationError):
    """Requested status is not reachable from the current one"""

    error_type = "invalid_transition"

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            f'No se puede cambiar de estado "{current_status}" a "{requested_status}"',
            details={
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )
        self.current_status = current_status
        self.requested_status = requested_status


class MissingTrackingNumberError(OrderValidationError):
    error_type = "missing_tracking_number"

    def __init__(self) -> None:
        super().__init__('Se requiere número de tracking para estado "enviado"')


class AccessDeniedError(OrderServiceError):
    """Caller is not allowed to act on the order"""

    error_type = "access_denied"


class OrderNotFoundError(OrderServiceError):
    """Order does not exist or has been soft-deleted"""

    error_type = "not_found"

    def __init__(self, order_id: str):
        super().__init__(
            f"Pedido con ID {order_id} no encontrado",
            details={"order_id": order_id},
        )
        self.order_id = order_id


# Conflict: request is well formed but clashes with current state


class OrderConflictError(OrderServiceError):
    error_type = "conflict"


class InsufficientStockError(OrderConflictError):
    error_type = "insufficient_stock"

    def __init__(self, unavailable: List[Dict[str, Any]]):
        super().__init__(
            "Algunos productos no tienen stock suficiente",
            details={"unavailable_products": unavailable},
        )
        self.unavailable = unavailable


class CancellationNotAllowedError(OrderConflictError):
    error_type = "cancellation_not_allowed"

    def __init__(self, status: str):
        super().__init__(
            f'No se puede cancelar un pedido con estado "{status}"',
            details={"status": status},
        )
        self.status = status


class ConcurrentModificationError(OrderConflictError):
    """Another writer persisted the order after it was loaded"""

    error_type = "concurrent_modification"

    def __init__(self, order_id: str):
        super().__init__(
            f"Pedido con ID {order_id} fue modificado concurrentemente",
            details={"order_id": order_id},
        )
        self.order_id = order_id


# Infrastructure: store / broker / configuration


class InfrastructureError(OrderServiceError):
    error_type = "internal_error"


class EventConfigurationError(InfrastructureError):
    """A queue name required to publish an event is not configured"""

    def __init__(self, setting_name: str):
        super().__init__(
            f"Missing required config: {setting_name}",
            details={"setting": setting_name},
        )
        self.setting_name = setting_name


class BrokerUnavailableError(InfrastructureError):
    """Transient: the broker connection is down or reconnecting"""


class BrokerConnectionError(InfrastructureError):
    """Fatal: the connection could not be established within the retry budget"""


class MessageSchemaError(OrderServiceError):
    """A consumed message does not match the expected envelope"""

    error_type = "message_schema_error"
