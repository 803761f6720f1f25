# app/schemas/discount.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

DiscountType = Literal["percentage", "fixed"]


class DiscountValidateRequest(SQLModel):
    """
    Checkout preview. If cart_subtotal is omitted the server uses the
    subtotal of the caller's current cart.
    """

    code: str
    cart_subtotal: Decimal | None = Field(default=None, ge=0)


class AppliedDiscountRead(SQLModel):
    code: str
    discount_type: DiscountType
    value: Decimal
    discount_amount: Decimal


class DiscountCodeBase(SQLModel):
    discount_type: DiscountType = "percentage"
    discount_value: Decimal = Field(ge=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=0)
    once_per_user: bool = False
    is_active: bool = True
    starts_at: datetime | None = None
    expires_at: datetime | None = None


def _check_value(discount_type: str | None, value: Decimal | None) -> None:
    if discount_type == "percentage" and value is not None and value > 100:
        raise ValueError("percentage discount_value must be between 0 and 100")


def _utc(dt: datetime) -> datetime:
    # naive values are taken as UTC, like everything the store writes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _check_window(starts_at: datetime | None, expires_at: datetime | None) -> None:
    if starts_at and expires_at and _utc(expires_at) <= _utc(starts_at):
        raise ValueError("expires_at must be after starts_at")


class DiscountCodeCreate(DiscountCodeBase):
    """
    Admin payload. `code` is stored trimmed and upper-cased.
    """

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=64)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v

    @model_validator(mode="after")
    def check_rules(self):
        _check_value(self.discount_type, self.discount_value)
        _check_window(self.starts_at, self.expires_at)
        return self


class DiscountCodeUpdate(SQLModel):
    """
    Partial admin update. use_count is not editable.
    """

    model_config = ConfigDict(extra="forbid")

    code: str | None = Field(default=None, min_length=1, max_length=64)
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, ge=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=0)
    once_per_user: bool | None = None
    is_active: bool | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v


class DiscountCodeRead(DiscountCodeBase):
    id: uuid.UUID
    code: str
    use_count: int
    created_at: datetime
    updated_at: datetime


class DiscountUsageRead(SQLModel):
    id: uuid.UUID
    discount_code_id: uuid.UUID
    user_id: uuid.UUID
    order_id: uuid.UUID | None
    used_at: datetime
