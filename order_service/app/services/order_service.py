"""
Order orchestration: creation, status changes, cancellation and the
compensating reaction to inventory stock failures.

Every command follows the same order: load or build the order, validate,
persist, publish the broker event, then notify the client. Publishing and
notifying happen after the commit and never undo it.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..core.setting import OrderServiceSettings, get_settings
from ..events.base import BrokerConnection
from ..events.consumers import StockFailedConsumer
from ..events.producers import OrderEventPublisher
from ..events.schemas import ORDER_CREATED, StockFailedEnvelope
from ..models.order import Order, OrderStatus
from ..repository.order_repository import OrderFilter, OrderRepository
from ..schemas.order import OrderCreate
from ..utils.logging import setup_order_logging as setup_logging
from . import state_machine
from .exceptions import (
    ConcurrentModificationError,
    InfrastructureError,
    InsufficientStockError,
    MessageSchemaError,
    OrderNotFoundError,
    OrderServiceError,
)
from .inventory_client import InventoryClient, ProductCatalog
from .notification_client import NotificationClient

logger = setup_logging("order_service", log_level="INFO")


class OrderOrchestrator:
    def __init__(
        self,
        repository: OrderRepository,
        publisher: OrderEventPublisher,
        notifier: NotificationClient,
        inventory: InventoryClient,
        catalog: ProductCatalog,
        settings: Optional[OrderServiceSettings] = None,
    ):
        self.repository = repository
        self.publisher = publisher
        self.notifier = notifier
        self.inventory = inventory
        self.catalog = catalog
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, order_id: str) -> Order:
        try:
            order = await self.repository.find_by_id(order_id)
        except OrderServiceError:
            raise
        except Exception as e:
            logger.error(f"Error loading order {order_id}: {e}")
            raise InfrastructureError("Error al obtener el pedido") from e
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _publish(self, event_type: str, order: Order) -> None:
        """Publish after commit; a failure is logged and left to operators"""
        try:
            await self.publisher.publish(event_type, order)
        except Exception as e:
            logger.error(
                f"Order {order.id} persisted but {event_type} was not published: {e}",
                extra={"order_id": order.id, "event_type": event_type},
            )

    async def _notify(self, kind: str, send, *args: Any) -> None:
        try:
            result = await send(*args)
        except Exception as e:
            logger.error(
                f"Failed to send {kind} notification: {e}",
                extra={"order_id": args[0].id},
            )
            return
        if not result.get("success"):
            logger.warning(
                f"{kind} notification not delivered",
                extra={"order_id": args[0].id, "error": result.get("error")},
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(self, command: OrderCreate) -> Order:
        """
        Create a new order.

        Stock is validated first; if any product falls short nothing is
        persisted and ``InsufficientStockError`` lists the shortfalls. Product
        name and price come from the catalog at creation time and are frozen
        in the items.
        """
        logger.info(
            f"Creating new order for client {command.client_id}",
            extra={"client_id": command.client_id, "items": len(command.items)},
        )
        try:
            # Repeated product lines are checked against stock as one quantity
            quantities: Dict[str, int] = {}
            for item in command.items:
                quantities[item.product_id] = (
                    quantities.get(item.product_id, 0) + item.quantity
                )
            requested = [
                {"product_id": product_id, "quantity": quantity}
                for product_id, quantity in quantities.items()
            ]
            stock = await self.inventory.check_stock(requested)
            if not stock.all_available:
                raise InsufficientStockError(stock.unavailable)

            items: List[Dict[str, Any]] = []
            total = Decimal("0")
            for line in command.items:
                product = await self.catalog.get_product(line.product_id)
                subtotal = product.price * line.quantity
                total += subtotal
                items.append(
                    {
                        "product_id": line.product_id,
                        "product_name": product.name,
                        "product_image_url": product.image_url,
                        "unit_price": product.price,
                        "quantity": line.quantity,
                        "subtotal": subtotal,
                    }
                )

            order = await self.repository.create(
                {
                    "client_id": command.client_id,
                    "client_name": command.client_name,
                    "client_email": command.client_email,
                    "shipping_address": command.shipping_address,
                    "status": OrderStatus.PENDING.value,
                    "total": total,
                    "items": items,
                }
            )
        except OrderServiceError:
            raise
        except Exception as e:
            logger.error(f"Error creating order for client {command.client_id}: {e}")
            raise InfrastructureError("Error al procesar el pedido") from e

        logger.info(
            "Order created successfully.",
            extra={
                "order_id": order.id,
                "client_id": order.client_id,
                "total": str(order.total),
            },
        )

        await self._publish(ORDER_CREATED, order)
        await self._notify("confirmation", self.notifier.send_order_confirmation, order)
        return order

    async def update_status(
        self,
        order_id: str,
        new_status: str,
        tracking_number: Optional[str] = None,
        cancellation_reason: Optional[str] = None,
    ) -> Order:
        """Move an order along the state machine and announce the change"""
        order = await self._load(order_id)
        change = state_machine.apply_status_change(
            order,
            new_status,
            tracking_number=tracking_number,
            cancellation_reason=cancellation_reason,
        )

        try:
            order = await self.repository.save(order)
        except OrderServiceError:
            raise
        except Exception as e:
            logger.error(f"Error updating order status {order_id}: {e}")
            raise InfrastructureError("Error al actualizar estado del pedido") from e

        logger.info(
            "Order status updated successfully.",
            extra={
                "order_id": order.id,
                "old_status": change.previous_status.value,
                "new_status": change.new_status.value,
            },
        )

        if change.event_type:
            await self._publish(change.event_type, order)
        await self._notify(
            "status update",
            self.notifier.send_status_update,
            order,
            change.previous_status.value,
        )
        return order

    async def cancel(self, order_id: str, reason: Optional[str] = None) -> Order:
        """Cancel an order that has not been delivered yet"""
        order = await self._load(order_id)
        change = state_machine.apply_cancellation(order, reason)

        try:
            order = await self.repository.save(order)
        except OrderServiceError:
            raise
        except Exception as e:
            logger.error(f"Error cancelling order {order_id}: {e}")
            raise InfrastructureError("Error al cancelar el pedido") from e

        logger.info(
            "Order cancelled.",
            extra={
                "order_id": order.id,
                "old_status": change.previous_status.value,
                "reason": order.cancellation_reason,
            },
        )
        await self._notify("cancellation", self.notifier.send_cancellation, order)
        return order

    # ------------------------------------------------------------------
    # Compensation
    # ------------------------------------------------------------------

    async def handle_stock_failed(self, message: Dict[str, Any]) -> None:
        """
        Cancel a still pending order the inventory service could not reserve.

        Orders that are unknown or already past ``pendiente`` are left alone:
        redeliveries of the same message are no-ops.
        """
        try:
            envelope = StockFailedEnvelope.model_validate(message)
        except ValidationError as e:
            raise MessageSchemaError(
                "Mensaje de fallo de stock inválido", details={"errors": e.errors()}
            ) from e

        order_id = envelope.message.resolved_order_id if envelope.message else None
        if not order_id:
            raise MessageSchemaError("Mensaje de fallo de stock sin orderId")

        logger.info(
            f"Processing stock failure for order {order_id}",
            extra={"order_id": order_id},
        )

        order = await self.repository.find_by_id(order_id)
        if order is None:
            logger.warning(
                f"Stock failure for unknown order {order_id}, discarding",
                extra={"order_id": order_id},
            )
            return
        if order.status != OrderStatus.PENDING.value:
            logger.info(
                f"Order {order_id} is no longer pending ({order.status}), discarding",
                extra={"order_id": order_id, "status": order.status},
            )
            return

        state_machine.apply_status_change(
            order,
            OrderStatus.CANCELLED,
            cancellation_reason=state_machine.STOCK_FAILURE_REASON,
        )
        try:
            order = await self.repository.save(order)
        except ConcurrentModificationError:
            logger.info(
                f"Order {order_id} changed while compensating, discarding",
                extra={"order_id": order_id},
            )
            return

        logger.info(
            f"Order {order_id} cancelled for insufficient stock",
            extra={"order_id": order_id, "reason": order.cancellation_reason},
        )
        await self._notify("cancellation", self.notifier.send_cancellation, order)

    async def register_consumers(self, connection: BrokerConnection) -> None:
        consumer = StockFailedConsumer(
            self.handle_stock_failed,
            queue_name=self.settings.QUEUE_ORDER_FAILED_STOCK,
        )
        await consumer.register(connection)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def find_all(self, filters: Optional[OrderFilter] = None) -> List[Order]:
        return await self.repository.query(filters)

    async def find_one(self, order_id: str) -> Order:
        return await self._load(order_id)

    async def client_history(self, client_id: str) -> List[Order]:
        return await self.repository.query(OrderFilter(client_id=client_id))
