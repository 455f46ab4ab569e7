from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Query, status

from ...models.order import Order
from ...repository.order_repository import OrderFilter
from ...schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    validate_uuid4,
)
from ...services.exceptions import OrderValidationError
from ...services.order_service import OrderOrchestrator
from ...utils.logging import setup_order_logging as setup_logging
from ..deps import AdminUserDep, AuthenticatedUser, CurrentUserDep, OrchestratorDep

logger = setup_logging("orders_api")

router = APIRouter(prefix="/orders")


def validate_order_id(order_id: str) -> str:
    """Validate the order ID format"""
    try:
        return validate_uuid4(order_id)
    except ValueError:
        raise OrderValidationError(
            "El ID del pedido (id) debe ser un UUID v4 válido",
            details={"order_id": order_id},
        )


def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_list_response(orders: List[Order]) -> OrderListResponse:
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=len(orders),
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=OrderResponse)
async def create_order(
    order_data: OrderCreate,
    user: AuthenticatedUser = CurrentUserDep,
    orchestrator: OrderOrchestrator = OrchestratorDep,
) -> OrderResponse:
    """Create a new order"""
    logger.info(
        f"CreateOrder - client {user.user_id}",
        extra={"user_id": user.user_id, "client_id": order_data.client_id},
    )
    user.ensure_owner(order_data.client_id, "Solo puedes crear pedidos para ti mismo")

    order = await orchestrator.create(order_data)
    return OrderResponse.model_validate(order)


@router.get("", status_code=status.HTTP_200_OK, response_model=OrderListResponse)
async def list_orders(
    order_id: Optional[str] = Query(None, alias="orderId"),
    client_id: Optional[str] = Query(None, alias="clientId"),
    client_name: Optional[str] = Query(None, alias="clientName"),
    order_status: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: AuthenticatedUser = CurrentUserDep,
    orchestrator: OrderOrchestrator = OrchestratorDep,
) -> OrderListResponse:
    """List orders; clients only ever see their own"""
    if not user.is_admin:
        client_id = user.user_id

    orders = await orchestrator.find_all(
        OrderFilter(
            order_id=order_id,
            client_id=client_id,
            client_name=client_name,
            status=order_status,
            start_date=as_utc_naive(start_date),
            end_date=as_utc_naive(end_date),
        )
    )
    return to_list_response(orders)


@router.get(
    "/clients/{client_id}/history",
    status_code=status.HTTP_200_OK,
    response_model=OrderListResponse,
)
async def get_client_history(
    client_id: str,
    user: AuthenticatedUser = CurrentUserDep,
    orchestrator: OrderOrchestrator = OrchestratorDep,
) -> OrderListResponse:
    """Order history of one client, newest first"""
    user.ensure_owner(client_id, "No tienes permiso para ver este historial")
    return to_list_response(await orchestrator.client_history(client_id))


@router.get("/{order_id}", status_code=status.HTTP_200_OK, response_model=OrderResponse)
async def get_order(
    order_id: str,
    user: AuthenticatedUser = CurrentUserDep,
    orchestrator: OrderOrchestrator = OrchestratorDep,
) -> OrderResponse:
    """Get order details by ID"""
    order = await orchestrator.find_one(validate_order_id(order_id))
    user.ensure_owner(order.client_id, "No tienes permiso para ver este pedido")
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/status", status_code=status.HTTP_200_OK, response_model=OrderResponse
)
async def update_order_status(
    order_id: str,
    update: OrderStatusUpdate,
    user: AuthenticatedUser = AdminUserDep,
    orchestrator: OrderOrchestrator = OrchestratorDep,
) -> OrderResponse:
    """Move an order to a new status (admin only)"""
    logger.info(
        f"UpdateOrderStatus - order {order_id} -> {update.status}",
        extra={"user_id": user.user_id, "order_id": order_id},
    )
    order = await orchestrator.update_status(
        validate_order_id(order_id),
        update.status,
        tracking_number=update.tracking_number,
        cancellation_reason=update.cancellation_reason,
    )
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/cancel", status_code=status.HTTP_200_OK, response_model=OrderResponse
)
async def cancel_order(
    order_id: str,
    cancel: Optional[OrderCancel] = None,
    user: AuthenticatedUser = CurrentUserDep,
    orchestrator: OrderOrchestrator = OrchestratorDep,
) -> OrderResponse:
    """Cancel an order that has not been delivered"""
    order_id = validate_order_id(order_id)
    order = await orchestrator.find_one(order_id)
    user.ensure_owner(order.client_id, "No tienes permiso para cancelar este pedido")

    order = await orchestrator.cancel(order_id, cancel.reason if cancel else None)
    return OrderResponse.model_validate(order)
