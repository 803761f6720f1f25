# app/models/discount.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DiscountCode(SQLModel, table=True):
    """
    Redeemable promotional code.

    - code is stored upper-cased and trimmed; lookups do the same.
    - use_count is incremented once per order that applied the code and
      never exceeds max_uses.
    """

    __tablename__ = "discount_codes"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    code: str = Field(
        max_length=64,
        unique=True,
        index=True,
    )

    # percentage | fixed
    discount_type: str = Field(default="percentage")

    discount_value: Decimal = Field(
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Percent (0-100) or fixed amount",
    )

    min_order_amount: Decimal | None = Field(
        default=None,
        max_digits=12,
        decimal_places=2,
    )

    max_uses: int | None = Field(default=None, ge=0)

    use_count: int = Field(default=0, ge=0)

    once_per_user: bool = Field(
        default=False,
        description="Reject the code for users who already redeemed it",
    )

    is_active: bool = Field(default=True, index=True)

    starts_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class DiscountCodeUsage(SQLModel, table=True):
    """
    Audit row: user X redeemed code Y on order Z.
    """

    __tablename__ = "discount_code_usages"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    discount_code_id: uuid.UUID = Field(
        foreign_key="discount_codes.id",
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    order_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="orders.id",
        index=True,
    )

    used_at: datetime = Field(default_factory=_utcnow)
