"""
Order status state machine.

Pure logic: validates transitions and applies them to an ``Order`` instance.
It never touches the store or the broker; the orchestrator persists the
mutated order and publishes the event named in the returned ``StatusChange``.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional, Union

from ..events.schemas import ORDER_DELIVERED, ORDER_SHIPPED
from ..models.order import Order, OrderStatus
from .exceptions import (
    CancellationNotAllowedError,
    InvalidTransitionError,
    MissingTrackingNumberError,
    OrderValidationError,
)

DEFAULT_CANCELLATION_REASON = "Cancelado por el usuario"
STOCK_FAILURE_REASON = "Stock insuficiente"

VALID_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE_STATES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED}
)

# Broker event emitted when entering a status; cancellation has none
TRANSITION_EVENTS: Dict[OrderStatus, str] = {
    OrderStatus.SHIPPED: ORDER_SHIPPED,
    OrderStatus.DELIVERED: ORDER_DELIVERED,
}


@dataclass(frozen=True)
class StatusChange:
    previous_status: OrderStatus
    new_status: OrderStatus
    event_type: Optional[str] = None


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    """Coerce a raw status string, rejecting values outside the enumeration"""
    try:
        return OrderStatus(value)
    except ValueError:
        raise OrderValidationError(
            f'Estado "{value}" no es válido',
            details={
                "status": str(value),
                "allowed": [status.value for status in OrderStatus],
            },
        )


def is_terminal(status: Union[str, OrderStatus]) -> bool:
    return not VALID_TRANSITIONS[parse_status(status)]


def can_cancel(status: Union[str, OrderStatus]) -> bool:
    return parse_status(status) in CANCELLABLE_STATES


def transition(
    current: Union[str, OrderStatus], requested: Union[str, OrderStatus]
) -> OrderStatus:
    """Return the requested status if the edge exists, raise otherwise"""
    current_status = parse_status(current)
    requested_status = parse_status(requested)

    if requested_status not in VALID_TRANSITIONS[current_status]:
        raise InvalidTransitionError(current_status.value, requested_status.value)
    return requested_status


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def apply_status_change(
    order: Order,
    requested: Union[str, OrderStatus],
    tracking_number: Optional[str] = None,
    cancellation_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """
    Validate and apply a generic status update.

    All validation happens before the order is mutated, so a rejected
    request leaves every field untouched.
    """
    previous_status = parse_status(order.status)
    new_status = transition(previous_status, requested)

    if new_status is OrderStatus.SHIPPED:
        if not tracking_number or not tracking_number.strip():
            raise MissingTrackingNumberError()

    timestamp = _now(now)
    order.status = new_status.value

    if new_status is OrderStatus.SHIPPED:
        order.tracking_number = tracking_number.strip()  # type: ignore[union-attr]
        order.shipped_at = timestamp
    elif new_status is OrderStatus.DELIVERED:
        order.delivered_at = timestamp
    elif new_status is OrderStatus.CANCELLED:
        order.cancellation_reason = cancellation_reason or DEFAULT_CANCELLATION_REASON
        order.cancelled_at = timestamp

    return StatusChange(
        previous_status=previous_status,
        new_status=new_status,
        event_type=TRANSITION_EVENTS.get(new_status),
    )


def apply_cancellation(
    order: Order,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """Cancel entry point: allowed from pendiente, en_procesamiento and enviado"""
    previous_status = parse_status(order.status)
    if previous_status not in CANCELLABLE_STATES:
        raise CancellationNotAllowedError(previous_status.value)

    order.status = OrderStatus.CANCELLED.value
    order.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
    order.cancelled_at = _now(now)

    return StatusChange(previous_status=previous_status, new_status=OrderStatus.CANCELLED)
