# app/models/product.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry (ring, necklace, gift box, ...).

    The catalog is owned by the admin app; the cart/order engine only
    reads it.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
        description="Display name of the piece",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    price: Decimal = Field(
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Unit price (INR)",
    )

    original_price: Decimal | None = Field(
        default=None,
        max_digits=12,
        decimal_places=2,
        description="Strike-through price, if on sale",
    )

    # None means the product does not track stock
    stock_quantity: int | None = Field(
        default=None,
        ge=0,
        description="How many units currently in stock",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    hero_image_url: str | None = Field(
        default=None,
        description="Main image URL",
    )

    # Option ids (size, metal, engraving, ...) this product accepts
    enabled_options: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class ProductAddon(SQLModel, table=True):
    """
    A complementary product offered next to a main product
    (gift wrap, matching earrings, polishing kit).

    price_override replaces the add-on product's own price when it is
    bought together with `product_id`.
    """

    __tablename__ = "product_addons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    addon_product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    # addon | suggestion | bundle
    addon_type: str = Field(default="addon")

    price_override: Decimal | None = Field(
        default=None,
        ge=0,
        max_digits=12,
        decimal_places=2,
    )

    display_order: int = Field(default=0)

    is_active: bool = Field(default=True, index=True)
