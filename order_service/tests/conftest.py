"""
Pytest configuration and fixtures for Order Service tests.
"""

import os
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

# Set up test environment before any order service module reads settings
os.environ["ENVIRONMENT"] = "test"
os.environ["ORDER_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["KAFKA_BOOTSTRAP_SERVERS"] = "localhost:9092"
os.environ["QUEUE_ORDER_CREATED"] = "order.created"
os.environ["QUEUE_ORDER_SHIPPED"] = "order.shipped"
os.environ["QUEUE_ORDER_DELIVERED"] = "order.delivered"
os.environ.pop("NOTIFICATION_SERVICE_URL", None)

from order_service.app.core.setting import get_settings  # noqa: E402
from order_service.app.models.order import Order, OrderItem, OrderStatus  # noqa: E402
from order_service.app.services.inventory_client import (  # noqa: E402
    ProductDetails,
    StockCheckResult,
)
from order_service.app.services.order_service import OrderOrchestrator  # noqa: E402


@pytest.fixture(scope="session")
def test_settings():
    """Get test settings."""
    return get_settings()


@pytest.fixture
def client_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def make_order(client_id) -> Callable[..., Order]:
    """Factory for transient orders with two items (total 2500)."""

    def _make_order(
        status: OrderStatus = OrderStatus.PENDING,
        items: Optional[List[Dict[str, Any]]] = None,
        **fields: Any,
    ) -> Order:
        items = items or [
            {"product_id": "p1", "unit_price": Decimal("1000"), "quantity": 2},
            {"product_id": "p2", "unit_price": Decimal("500"), "quantity": 1},
        ]
        order_items = [
            OrderItem(
                id=str(uuid.uuid4()),
                position=position,
                product_id=item["product_id"],
                product_name=item.get("product_name", f"Producto {item['product_id']}"),
                unit_price=item["unit_price"],
                quantity=item["quantity"],
                subtotal=item["unit_price"] * item["quantity"],
            )
            for position, item in enumerate(items)
        ]
        values: Dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "client_id": client_id,
            "client_name": "Ana Pérez",
            "client_email": "ana@example.com",
            "shipping_address": "Av. Siempre Viva 742",
            "status": status.value,
            "total": sum((item.subtotal for item in order_items), Decimal("0")),
            "is_deleted": False,
            "created_at": datetime(2026, 1, 1, 12, 0, 0),
            "updated_at": datetime(2026, 1, 1, 12, 0, 0),
        }
        values.update(fields)
        order = Order(**values)
        order.items = order_items
        return order

    return _make_order


@pytest.fixture
def mock_repository():
    repository = Mock()
    repository.create = AsyncMock()
    repository.find_by_id = AsyncMock(return_value=None)
    repository.save = AsyncMock(side_effect=lambda order: order)
    repository.query = AsyncMock(return_value=[])
    return repository


@pytest.fixture
def mock_publisher():
    publisher = Mock()
    publisher.publish = AsyncMock()
    return publisher


@pytest.fixture
def mock_notifier():
    notifier = Mock()
    notifier.send_order_confirmation = AsyncMock(return_value={"success": True})
    notifier.send_status_update = AsyncMock(return_value={"success": True})
    notifier.send_cancellation = AsyncMock(return_value={"success": True})
    return notifier


@pytest.fixture
def mock_inventory():
    inventory = Mock()
    inventory.check_stock = AsyncMock(return_value=StockCheckResult(all_available=True))
    inventory.close = AsyncMock()
    return inventory


@pytest.fixture
def mock_catalog():
    prices = {"p1": Decimal("1000"), "p2": Decimal("500")}

    async def get_product(product_id: str) -> ProductDetails:
        return ProductDetails(
            id=product_id,
            name=f"Producto {product_id}",
            price=prices.get(product_id, Decimal("10000")),
            image_url=None,
        )

    catalog = Mock()
    catalog.get_product = AsyncMock(side_effect=get_product)
    catalog.close = AsyncMock()
    return catalog


@pytest.fixture
def orchestrator(
    mock_repository,
    mock_publisher,
    mock_notifier,
    mock_inventory,
    mock_catalog,
    test_settings,
) -> OrderOrchestrator:
    return OrderOrchestrator(
        repository=mock_repository,
        publisher=mock_publisher,
        notifier=mock_notifier,
        inventory=mock_inventory,
        catalog=mock_catalog,
        settings=test_settings,
    )


@pytest.fixture
def mock_request():
    """Mock FastAPI Request object."""
    from fastapi import Request

    mock_req = Mock(spec=Request)
    mock_req.state = Mock()
    mock_req.headers = {}
    mock_req.url = Mock()
    mock_req.url.path = "/test"
    mock_req.method = "GET"
    return mock_req
