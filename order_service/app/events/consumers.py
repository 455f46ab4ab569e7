"""
Order service event consumers for handling events from other services.

Only the inventory service's ``order.failed.stock`` event is consumed: it
compensates an order created while stock ran out between the synchronous
check and the reservation.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from ..services.exceptions import MessageSchemaError
from ..utils.logging import setup_order_logging as setup_logging
from .base import BrokerConnection, Delivery
from .schemas import ORDER_FAILED_STOCK

logger = setup_logging("order-consumer-events", log_level="INFO")

StockFailedCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class StockFailedConsumer:
    """Handle order.failed.stock events by cancelling the pending order"""

    def __init__(
        self,
        on_stock_failed: StockFailedCallback,
        queue_name: Optional[str] = None,
    ):
        self.on_stock_failed = on_stock_failed
        self.queue_name = queue_name or ORDER_FAILED_STOCK

    async def handle(self, payload: Dict[str, Any]) -> Delivery:
        """
        Apply the compensation and acknowledge.

        A message that does not match the envelope can never succeed, so it
        is logged and acknowledged. Any other failure propagates and the
        connection's handler-error policy decides between ack and requeue.
        """
        try:
            await self.on_stock_failed(payload)
        except MessageSchemaError as e:
            logger.error(
                f"Discarding malformed {ORDER_FAILED_STOCK} message: {e.message}",
                extra={"queue": self.queue_name, "payload": payload},
            )
        return Delivery.ACK

    async def register(self, connection: BrokerConnection) -> None:
        await connection.consume(self.queue_name, self.handle)
        logger.info(
            f"Registered {ORDER_FAILED_STOCK} consumer",
            extra={"queue": self.queue_name},
        )
