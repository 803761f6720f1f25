# app/schemas/order.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]


class ShippingAddress(SQLModel):
    """
    Address snapshot stored on the order as JSON.
    """

    first_name: str
    last_name: str
    address: str
    apartment: str | None = None
    city: str
    state: str
    pin_code: str
    country: str = "India"
    phone: str

    @field_validator("first_name", "address", "city", "state", "pin_code", "phone")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderCreate(SQLModel):
    """
    Payload for creating an order from the current cart.

    User provides:
      - shipping address (billing defaults to it)
      - payment method tag
      - shipping / tax amounts as quoted by the storefront
      - optional discount code and notes

    Backend derives:
      - user_id from token
      - items, prices and subtotal from the cart and catalog
      - discount amount (re-validated here)
      - order_number, status='pending', payment_status='pending'
    """

    model_config = ConfigDict(extra="forbid")

    discount_code: str | None = None
    shipping_amount: Decimal = Field(default=Decimal("0"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_address: ShippingAddress
    billing_address: ShippingAddress | None = None
    payment_method: str = Field(min_length=1, max_length=32)
    notes: str | None = None

    @field_validator("discount_code", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: str | None
    subtotal: Decimal
    discount_code: str | None
    discount_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    shipping_address: dict[str, Any] | None
    billing_address: dict[str, Any] | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class OrderItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    parent_item_id: uuid.UUID | None
    quantity: int
    price: Decimal
    total: Decimal
    product_snapshot: dict[str, Any] | None


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to move an order and/or its payment along.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
