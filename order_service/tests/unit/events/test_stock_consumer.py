"""
Unit tests for the order.failed.stock consumer.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from order_service.app.events.base import Delivery
from order_service.app.events.consumers import StockFailedConsumer
from order_service.app.services.exceptions import MessageSchemaError


@pytest.mark.asyncio
async def test_handle_passes_payload_and_acks():
    callback = AsyncMock()
    consumer = StockFailedConsumer(callback)
    payload = {"message": {"orderId": "o-1"}}

    decision = await consumer.handle(payload)

    assert decision is Delivery.ACK
    callback.assert_awaited_once_with(payload)


@pytest.mark.asyncio
async def test_malformed_message_is_acked():
    consumer = StockFailedConsumer(AsyncMock(side_effect=MessageSchemaError("bad")))

    assert await consumer.handle({"unexpected": True}) is Delivery.ACK


@pytest.mark.asyncio
async def test_other_failures_propagate_to_connection_policy():
    consumer = StockFailedConsumer(AsyncMock(side_effect=RuntimeError("db down")))

    with pytest.raises(RuntimeError):
        await consumer.handle({"message": {"orderId": "o-1"}})


@pytest.mark.asyncio
async def test_register_uses_configured_queue():
    connection = Mock()
    connection.consume = AsyncMock()
    consumer = StockFailedConsumer(AsyncMock(), queue_name="stock.failures")

    await consumer.register(connection)

    connection.consume.assert_awaited_once_with("stock.failures", consumer.handle)


def test_default_queue_name():
    assert StockFailedConsumer(AsyncMock()).queue_name == "order.failed.stock"
