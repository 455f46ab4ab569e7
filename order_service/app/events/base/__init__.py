"""
Order Service messaging base classes and interfaces.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict


class Delivery(str, Enum):
    """Decision returned by a message handler for one delivered message"""

    ACK = "ack"
    REQUEUE = "requeue"


# A handler receives the decoded JSON payload and returns the ack decision;
# the connection supervisor performs the acknowledgement itself.
MessageHandler = Callable[[Dict[str, Any]], Awaitable[Delivery]]


class BrokerConnection(ABC):
    """Abstract base class for the process-wide broker connection"""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether publish/consume can currently reach the broker"""

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection, retrying with backoff"""
        pass

    @abstractmethod
    async def publish(
        self, queue_name: str, payload: Dict[str, Any], durable: bool = True
    ) -> None:
        """Publish a JSON payload persistently onto a durable queue"""
        pass

    @abstractmethod
    async def consume(self, queue_name: str, handler: MessageHandler) -> None:
        """Register the handler invoked once per message delivered on the queue"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection and stop consuming"""
        pass
