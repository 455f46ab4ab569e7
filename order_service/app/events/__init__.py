"""
Events module for the Order Service.

This module contains the broker connection, the event publisher and the
consumers used by the order lifecycle.

Producers:
    - OrderEventPublisher: order.created, order.shipped, order.delivered

Consumers:
    - StockFailedConsumer: cancels pending orders on order.failed.stock

Connection:
    - KafkaBrokerConnection: reconnecting aiokafka producer/consumer pair
"""

from .base import BrokerConnection, Delivery, MessageHandler
from .base.kafka_client import KafkaBrokerConnection
from .consumers import StockFailedConsumer
from .producers import OrderEventPublisher

__all__ = [
    # Connection
    "BrokerConnection",
    "Delivery",
    "KafkaBrokerConnection",
    "MessageHandler",
    # Producers
    "OrderEventPublisher",
    # Consumers
    "StockFailedConsumer",
]
