# app/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(SQLModel, table=True):
    """
    Customer order.

    Money fields are written once at checkout. Only status,
    payment_status and updated_at change afterwards.

    total_amount = subtotal - discount_amount + shipping_amount + tax_amount
    (never below zero).
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        max_length=32,
        unique=True,
        index=True,
        description="Human-readable number, generated by the store",
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # pending | confirmed | processing | shipped | delivered | cancelled | refunded
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # pending | paid | failed | refunded
    payment_status: str = Field(default="pending", index=True)

    payment_method: str | None = Field(
        default=None,
        description="Opaque payment method tag (card, upi, cod, ...)",
    )

    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    discount_code: str | None = Field(default=None, max_length=64)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    shipping_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(max_digits=12, decimal_places=2)

    shipping_address: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )
    billing_address: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )

    notes: str | None = None

    created_at: datetime = Field(
        default_factory=_utcnow,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(default_factory=_utcnow)


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    product_snapshot keeps name/image/slug/options as they were at
    checkout so later catalog edits never change order history.
    Add-on lines point at their main line through parent_item_id.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # Not a FK: order history must survive product deletion
    product_id: uuid.UUID = Field(index=True)

    parent_item_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="order_items.id",
    )

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    price: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Unit price at time of order",
    )

    total: Decimal = Field(max_digits=12, decimal_places=2)

    product_snapshot: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )

    created_at: datetime = Field(default_factory=_utcnow)


class OrderNumberSequence(SQLModel, table=True):
    """
    Store-side counter for order numbers. Each checkout inserts one row and
    uses the database-assigned id.
    """

    __tablename__ = "order_number_sequence"

    id: int | None = Field(default=None, primary_key=True)

    created_at: datetime = Field(default_factory=_utcnow)
