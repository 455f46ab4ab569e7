"""
Notification Client
Sends order emails through the Notification Service API.
"""

from typing import Any, Dict, Optional

import httpx

from ..core.setting import get_settings
from ..models.order import Order, OrderStatus
from ..utils.logging import setup_order_logging as setup_logging

logger = setup_logging("order_service.notification_client")

STATUS_LABELS = {
    OrderStatus.PENDING.value: "Pendiente 🕒",
    OrderStatus.PROCESSING.value: "En procesamiento 📦",
    OrderStatus.SHIPPED.value: "Enviado 🚚",
    OrderStatus.DELIVERED.value: "Entregado ✅",
    OrderStatus.CANCELLED.value: "Cancelado ❌",
}


def order_reference(order: Order) -> str:
    """Short human readable order number used in subjects"""
    return order.id[:8].upper()


class NotificationClient:
    """Client for sending order notifications via Notification Service API"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        url = base_url if base_url is not None else settings.NOTIFICATION_SERVICE_URL
        self.base_url = url.rstrip("/") if url else None
        self.timeout = timeout or settings.HTTP_CLIENT_TIMEOUT

    @property
    def enabled(self) -> bool:
        return self.base_url is not None

    async def _send_notification(
        self, order: Order, notification_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Post one email notification; never raises"""
        if not self.enabled:
            logger.warning(
                "Notification service not configured, skipping email",
                extra={"order_id": order.id, "subject": notification_data.get("subject")},
            )
            return {"success": False, "error": "Notification service not configured"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/api/v1/notifications/send",
                    params={"user_id": order.client_id},
                    json=notification_data,
                )

            if response.status_code in (200, 201):
                result = response.json()
                logger.info(
                    "Order email sent",
                    extra={"order_id": order.id, "recipient": order.client_email},
                )
                return {"success": True, "notification_id": result.get("notification_id")}

            logger.error(
                f"Failed to send order email: HTTP {response.status_code}",
                extra={"order_id": order.id, "status_code": response.status_code},
            )
            return {"success": False, "error": f"HTTP {response.status_code}"}

        except Exception as e:
            logger.error(
                f"Error sending order email: {e}",
                extra={"order_id": order.id, "error": str(e)},
            )
            return {"success": False, "error": str(e)}

    def _email(
        self,
        order: Order,
        subject: str,
        content: str,
        template_id: str,
        template_data: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "type": "email",
            "channel": "order",
            "recipient": order.client_email,
            "subject": subject,
            "content": content,
            "priority": "medium",
            "template_id": template_id,
            "template_data": {
                "client_name": order.client_name,
                "order_id": order.id,
                "order_reference": order_reference(order),
                **template_data,
            },
        }

    async def send_order_confirmation(self, order: Order) -> Dict[str, Any]:
        """Send the order confirmation email"""
        notification_data = self._email(
            order,
            subject=f"✅ Confirmación de Pedido #{order_reference(order)}",
            content=f"Hola {order.client_name}, tu pedido ha sido creado exitosamente.",
            template_id="order_confirmation",
            template_data={
                "total": str(order.total),
                "shipping_address": order.shipping_address,
                "items": [
                    {
                        "product_name": item.product_name,
                        "quantity": item.quantity,
                        "unit_price": str(item.unit_price),
                        "subtotal": str(item.subtotal),
                    }
                    for item in order.items
                ],
            },
        )
        return await self._send_notification(order, notification_data)

    async def send_status_update(
        self, order: Order, previous_status: str
    ) -> Dict[str, Any]:
        """Send the status change email"""
        label = STATUS_LABELS.get(order.status, "ℹ️")
        notification_data = self._email(
            order,
            subject=f"{label} Actualización de Pedido #{order_reference(order)}",
            content=(
                f"Hola {order.client_name}, tu pedido cambió de estado "
                f"{previous_status} a {order.status}."
            ),
            template_id="order_status_update",
            template_data={
                "previous_status": previous_status,
                "status": order.status,
                "tracking_number": order.tracking_number,
            },
        )
        return await self._send_notification(order, notification_data)

    async def send_cancellation(self, order: Order) -> Dict[str, Any]:
        """Send the cancellation email"""
        notification_data = self._email(
            order,
            subject=f"Cancelación de Pedido #{order_reference(order)}",
            content=f"Hola {order.client_name}, tu pedido ha sido cancelado.",
            template_id="order_cancellation",
            template_data={"cancellation_reason": order.cancellation_reason},
        )
        return await self._send_notification(order, notification_data)
