"""
Order schemas package
"""

from .order import (
    HealthResponse,
    OrderBase,
    OrderCancel,
    OrderCreate,
    OrderItemBase,
    OrderItemCreate,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    validate_uuid4,
)

__all__ = [
    "OrderItemBase",
    "OrderItemCreate",
    "OrderItemResponse",
    "OrderBase",
    "OrderCreate",
    "OrderStatusUpdate",
    "OrderCancel",
    "OrderResponse",
    "OrderListResponse",
    "HealthResponse",
    "validate_uuid4",
]
