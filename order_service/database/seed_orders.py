"""
Sample orders for local development.

Usage:
    python -m order_service.database.seed_orders
"""

import asyncio
import uuid
from decimal import Decimal
from typing import Any, Dict, List

from order_service.app.core.database import OrderServiceDatabaseManager
from order_service.app.core.setting import get_settings
from order_service.app.models.order import Order, OrderStatus
from order_service.app.repository.order_repository import OrderRepository
from order_service.app.utils.logging import setup_order_logging

logger = setup_order_logging("order_service.seed", log_level="INFO")

CLIENTS = [
    {
        "name": "Byron Letelier",
        "email": "byron.letelier@alumnos.ucn.cl",
        "address": "Av. Libertador Bernardo O'Higgins 123, Santiago",
    },
    {
        "name": "María García López",
        "email": "maria.garcia@censudex.cl",
        "address": "Calle Moneda 456, Santiago",
    },
    {
        "name": "Pedro Martínez Silva",
        "email": "pedro.martinez@censudex.cl",
        "address": "Av. Providencia 789, Providencia",
    },
]

PRODUCTS = [
    ("Notebook HP Pavilion 15", Decimal("599990")),
    ("Mouse Logitech MX Master 3", Decimal("89990")),
    ("Teclado Mecánico Keychron K2", Decimal("129990")),
    ('Monitor Samsung 27" 4K', Decimal("299990")),
    ("Auriculares Sony WH-1000XM5", Decimal("249990")),
]

# (client index, [(product index, quantity)], status)
SAMPLE_ORDERS = [
    (0, [(0, 1), (1, 2)], OrderStatus.PENDING),
    (1, [(2, 1), (3, 1)], OrderStatus.PROCESSING),
    (2, [(4, 1)], OrderStatus.SHIPPED),
    (0, [(1, 3), (2, 1)], OrderStatus.DELIVERED),
    (1, [(0, 1)], OrderStatus.CANCELLED),
]


def build_sample_orders() -> List[Dict[str, Any]]:
    client_ids = [str(uuid.uuid4()) for _ in CLIENTS]
    product_ids = [str(uuid.uuid4()) for _ in PRODUCTS]

    orders = []
    for client_index, lines, status in SAMPLE_ORDERS:
        client = CLIENTS[client_index]
        items = []
        for product_index, quantity in lines:
            name, price = PRODUCTS[product_index]
            items.append(
                {
                    "product_id": product_ids[product_index],
                    "product_name": name,
                    "product_image_url": "https://via.placeholder.com/300x300?text="
                    + name.split()[0],
                    "unit_price": price,
                    "quantity": quantity,
                    "subtotal": price * quantity,
                }
            )
        orders.append(
            {
                "client_id": client_ids[client_index],
                "client_name": client["name"],
                "client_email": client["email"],
                "shipping_address": client["address"],
                "status": status.value,
                "total": sum((item["subtotal"] for item in items), Decimal("0")),
                "items": items,
            }
        )
    return orders


async def seed_orders(repository: OrderRepository) -> List[Order]:
    created = []
    for fields in build_sample_orders():
        order = await repository.create(fields)
        logger.info(
            f"Seeded order {order.id[:8]} ({order.status})",
            extra={"order_id": order.id, "items": len(order.items)},
        )
        created.append(order)
    return created


async def main() -> None:
    settings = get_settings()
    manager = OrderServiceDatabaseManager(settings.ORDER_DATABASE_URL)
    try:
        await manager.create_tables()
        orders = await seed_orders(OrderRepository(manager.async_session_maker))
        logger.info(f"Seeding finished: {len(orders)} orders created")
    finally:
        await manager.close()


if __name__ == "__main__":
    asyncio.run(main())
