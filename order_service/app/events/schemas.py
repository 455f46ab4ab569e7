"""
Order service event schemas.

Wire payloads exchanged on the broker queues. Keys are camelCase on the
wire (the contract shared with the inventory and notification services)
and snake_case in Python.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Event type constants
ORDER_CREATED = "order.created"
ORDER_SHIPPED = "order.shipped"
ORDER_DELIVERED = "order.delivered"
ORDER_FAILED_STOCK = "order.failed.stock"


class OrderEventData(BaseModel):
    """Base order event data structure"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-ready wire representation"""
        return self.model_dump(mode="json", by_alias=True)


class OrderCreatedPayload(OrderEventData):
    """Compact projection consumed by the inventory service"""

    order_id: str
    products: Dict[str, int]


class ShippedItemData(OrderEventData):
    product_id: str
    quantity: int


class OrderShippedPayload(OrderEventData):
    order_id: str
    client_id: str
    client_email: str
    tracking_number: str
    items: List[ShippedItemData]


class OrderDeliveredPayload(OrderEventData):
    order_id: str
    client_id: str
    client_email: str


class StockFailedMessage(BaseModel):
    """Inner ``message`` object of an ``order.failed.stock`` envelope"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    order_id: Optional[Union[str, int]] = Field(default=None, alias="orderId")
    legacy_order_id: Optional[Union[str, int]] = Field(default=None, alias="OrderId")

    @property
    def resolved_order_id(self) -> Optional[str]:
        value = self.order_id or self.legacy_order_id
        return str(value) if value else None


class StockFailedEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Optional[StockFailedMessage] = None
