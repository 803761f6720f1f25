# app/schemas/cart.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import model_validator
from sqlmodel import SQLModel, Field

# How the customer resolved a CART_CONFLICT
ConflictResolution = Literal["replace", "separate"]


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    First attempt: send product_id / quantity / selected_options only.
    If the answer is 409 CART_CONFLICT, resend with
      - resolution="replace" and existing_item_id, or
      - resolution="separate".
    """

    product_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)
    selected_options: dict[str, Any] = Field(default_factory=dict)
    resolution: ConflictResolution | None = None
    existing_item_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def replace_needs_target(self):
        if self.resolution == "replace" and self.existing_item_id is None:
            raise ValueError("existing_item_id is required to replace a cart line")
        return self


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart line.
    quantity < 1 removes the line.
    """

    quantity: int


class CartAddonRead(SQLModel):
    id: uuid.UUID
    cart_item_id: uuid.UUID
    addon_product_id: uuid.UUID
    name: str | None = None
    image_url: str | None = None
    unit_price: Decimal
    quantity: int
    selected_options: dict[str, Any]
    line_total: Decimal


class CartItemRead(SQLModel):
    """
    Read model for a single cart line with catalog data joined in.
    Prices are the current catalog prices; checkout re-reads them.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    variant_key: str
    quantity: int
    selected_options: dict[str, Any]
    product_name: str | None = None
    product_slug: str | None = None
    product_image_url: str | None = None
    unit_price: Decimal
    stock_quantity: int | None = None
    line_total: Decimal
    addons: list[CartAddonRead] = []
    addons_total: Decimal
    created_at: datetime
    updated_at: datetime


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartItemRead]
    item_count: int
    subtotal: Decimal
