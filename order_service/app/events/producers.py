from typing import Any, Dict, Optional

from ..core.setting import OrderServiceSettings, get_settings
from ..models.order import Order
from ..services.exceptions import EventConfigurationError
from ..utils.logging import setup_order_logging as setup_logging
from .base import BrokerConnection
from .schemas import (
    ORDER_CREATED,
    ORDER_DELIVERED,
    ORDER_SHIPPED,
    OrderCreatedPayload,
    OrderDeliveredPayload,
    OrderEventData,
    OrderShippedPayload,
    ShippedItemData,
)

logger = setup_logging("order-producer-events", log_level="INFO")

# Event type -> settings field holding its queue name
QUEUE_SETTINGS: Dict[str, str] = {
    ORDER_CREATED: "QUEUE_ORDER_CREATED",
    ORDER_SHIPPED: "QUEUE_ORDER_SHIPPED",
    ORDER_DELIVERED: "QUEUE_ORDER_DELIVERED",
}


class BaseEventPublisher:
    """Base class for event publishers with common functionality"""

    def __init__(
        self,
        connection: BrokerConnection,
        settings: Optional[OrderServiceSettings] = None,
    ):
        self.connection = connection
        self.settings = settings or get_settings()

    def queue_for(self, event_type: str) -> str:
        """Resolve the configured queue for an event type"""
        setting_name = QUEUE_SETTINGS[event_type]
        queue_name = getattr(self.settings, setting_name, None)
        if not queue_name:
            raise EventConfigurationError(setting_name)
        return queue_name

    async def _publish_event(
        self,
        event_type: str,
        event_data: OrderEventData,
        log_data: Dict[str, Any],
    ) -> None:
        """Common event publishing logic with error handling and logging"""
        queue_name = self.queue_for(event_type)
        try:
            await self.connection.publish(queue_name, event_data.to_dict(), durable=True)
            logger.info(
                f"Published {event_type} event.",
                extra={"queue": queue_name, **log_data},
            )
        except Exception as e:
            logger.error(
                f"Failed to publish {event_type} event: {e}",
                extra={"queue": queue_name, **log_data},
            )
            raise


class OrderEventPublisher(BaseEventPublisher):
    """Handles order lifecycle events"""

    async def order_created(self, order: Order) -> None:
        """Publish the order created event with the product -> quantity map"""
        products: Dict[str, int] = {}
        for item in order.items:
            products[item.product_id] = products.get(item.product_id, 0) + item.quantity

        await self._publish_event(
            ORDER_CREATED,
            OrderCreatedPayload(order_id=order.id, products=products),
            log_data={"order_id": order.id, "client_id": order.client_id},
        )

    async def order_shipped(self, order: Order) -> None:
        event_data = OrderShippedPayload(
            order_id=order.id,
            client_id=order.client_id,
            client_email=order.client_email,
            tracking_number=order.tracking_number or "",
            items=[
                ShippedItemData(product_id=item.product_id, quantity=item.quantity)
                for item in order.items
            ],
        )
        await self._publish_event(
            ORDER_SHIPPED,
            event_data,
            log_data={
                "order_id": order.id,
                "tracking_number": order.tracking_number,
            },
        )

    async def order_delivered(self, order: Order) -> None:
        await self._publish_event(
            ORDER_DELIVERED,
            OrderDeliveredPayload(
                order_id=order.id,
                client_id=order.client_id,
                client_email=order.client_email,
            ),
            log_data={"order_id": order.id},
        )

    async def publish(self, event_type: str, order: Order) -> None:
        """Dispatch by event type, as named in a ``StatusChange``"""
        publishers = {
            ORDER_CREATED: self.order_created,
            ORDER_SHIPPED: self.order_shipped,
            ORDER_DELIVERED: self.order_delivered,
        }
        await publishers[event_type](order)
