"""
Unit tests for the order event publisher.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from order_service.app.events.producers import OrderEventPublisher
from order_service.app.events.schemas import (
    ORDER_CREATED,
    ORDER_DELIVERED,
    ORDER_SHIPPED,
    OrderCreatedPayload,
)
from order_service.app.models.order import OrderStatus
from order_service.app.services.exceptions import (
    BrokerUnavailableError,
    EventConfigurationError,
)


@pytest.fixture
def connection():
    connection = Mock()
    connection.publish = AsyncMock()
    return connection


@pytest.fixture
def publisher(connection, test_settings):
    return OrderEventPublisher(connection, settings=test_settings)


class TestQueueResolution:
    def test_queue_for_configured_event(self, publisher):
        assert publisher.queue_for(ORDER_CREATED) == "order.created"

    @pytest.mark.asyncio
    async def test_unconfigured_queue_fails_before_publishing(
        self, connection, test_settings, make_order
    ):
        settings = test_settings.model_copy(update={"QUEUE_ORDER_SHIPPED": None})
        publisher = OrderEventPublisher(connection, settings=settings)

        with pytest.raises(EventConfigurationError) as exc_info:
            await publisher.order_shipped(make_order(OrderStatus.SHIPPED))

        assert exc_info.value.setting_name == "QUEUE_ORDER_SHIPPED"
        assert "QUEUE_ORDER_SHIPPED" in exc_info.value.message
        connection.publish.assert_not_awaited()


class TestOrderEvents:
    @pytest.mark.asyncio
    async def test_order_created_payload(self, publisher, connection, make_order):
        order = make_order()

        await publisher.order_created(order)

        connection.publish.assert_awaited_once_with(
            "order.created",
            {"orderId": order.id, "products": {"p1": 2, "p2": 1}},
            durable=True,
        )

    @pytest.mark.asyncio
    async def test_order_created_sums_repeated_products(
        self, publisher, connection, make_order
    ):
        order = make_order(
            items=[
                {"product_id": "p1", "unit_price": Decimal("1000"), "quantity": 2},
                {"product_id": "p1", "unit_price": Decimal("1000"), "quantity": 3},
            ]
        )

        await publisher.order_created(order)

        payload = connection.publish.await_args.args[1]
        assert OrderCreatedPayload.model_validate(payload).products == {"p1": 5}

    @pytest.mark.asyncio
    async def test_order_shipped_payload(self, publisher, connection, make_order):
        order = make_order(OrderStatus.SHIPPED, tracking_number="TRK-9")

        await publisher.publish(ORDER_SHIPPED, order)

        queue_name, payload = connection.publish.await_args.args
        assert queue_name == "order.shipped"
        assert payload == {
            "orderId": order.id,
            "clientId": order.client_id,
            "clientEmail": "ana@example.com",
            "trackingNumber": "TRK-9",
            "items": [
                {"productId": "p1", "quantity": 2},
                {"productId": "p2", "quantity": 1},
            ],
        }

    @pytest.mark.asyncio
    async def test_order_delivered_payload(self, publisher, connection, make_order):
        order = make_order(OrderStatus.DELIVERED)

        await publisher.publish(ORDER_DELIVERED, order)

        connection.publish.assert_awaited_once_with(
            "order.delivered",
            {
                "orderId": order.id,
                "clientId": order.client_id,
                "clientEmail": "ana@example.com",
            },
            durable=True,
        )

    @pytest.mark.asyncio
    async def test_broker_failure_propagates(self, publisher, connection, make_order):
        connection.publish.side_effect = BrokerUnavailableError("down")

        with pytest.raises(BrokerUnavailableError):
            await publisher.order_created(make_order())
