import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def validate_uuid4(value: str) -> str:
    """Accept only canonical UUID v4 strings"""
    try:
        parsed = uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        raise ValueError("must be a valid UUID v4")
    if parsed.version != 4:
        raise ValueError("must be a valid UUID v4")
    return str(parsed)


class OrderItemBase(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)


class OrderItemCreate(OrderItemBase):
    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        return validate_uuid4(v)


class OrderItemResponse(OrderItemBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_name: str
    product_image_url: Optional[str] = None
    unit_price: Decimal
    subtotal: Decimal


class OrderBase(BaseModel):
    client_id: str
    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: EmailStr = Field(..., examples=["client@example.com"])
    shipping_address: str = Field(..., min_length=1)


class OrderCreate(OrderBase):
    items: List[OrderItemCreate] = Field(..., min_length=1)

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        return validate_uuid4(v)

    @field_validator("client_name", "shipping_address")
    @classmethod
    def validate_not_blank(cls, v: str, info) -> str:
        if not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace only")
        return v.strip()


class OrderStatusUpdate(BaseModel):
    """Admin status change; the state machine validates the value"""

    status: str
    tracking_number: Optional[str] = Field(None, max_length=100)
    cancellation_reason: Optional[str] = None


class OrderCancel(BaseModel):
    reason: Optional[str] = None


class OrderResponse(OrderBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_email: str
    status: str
    total: Decimal
    tracking_number: Optional[str] = None
    cancellation_reason: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    broker_connected: bool
