# app/models/cart.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column, ForeignKey, UniqueConstraint, Uuid
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartItem(SQLModel, table=True):
    """
    Shopping cart line for a user.

    One user cannot have 2 rows for the same (product, variant_key).
    variant_key is "" for the normal line of a product; a line added
    "separately" after a conflict gets a hash of its options instead.
    """

    __tablename__ = "cart"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "product_id", "variant_key", name="uq_cart_user_product_variant"
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    variant_key: str = Field(default="", max_length=64)

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    selected_options: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class CartItemAddon(SQLModel, table=True):
    """
    Add-on product attached to a cart line. Same add-on may be attached
    more than once.
    """

    __tablename__ = "cart_item_addons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_item_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid,
            ForeignKey("cart.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )

    addon_product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(default=1, gt=0)

    selected_options: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(default_factory=_utcnow)
