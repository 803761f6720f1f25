# app/services/discount_validator.py
"""
Pure discount-code evaluation.

The caller loads the DiscountCode row (case-insensitive, trimmed lookup)
and passes it in together with the cart subtotal and the current time.
Checks run in a fixed order and the first failure wins:

    1. INVALID_CODE         not found or inactive
    2. EXPIRED              expires_at in the past
    3. NOT_YET_ACTIVE       starts_at in the future
    4. USAGE_LIMIT_REACHED  use_count >= max_uses
    5. ALREADY_USED         once_per_user and the user redeemed it before
    6. BELOW_MINIMUM        subtotal < min_order_amount

Nothing here touches the database, so checkout can (and must) re-run it
right before the order is written.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from app.core.money import to_money
from app.models.discount import DiscountCode

INVALID_CODE = "INVALID_CODE"
EXPIRED = "EXPIRED"
NOT_YET_ACTIVE = "NOT_YET_ACTIVE"
USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
ALREADY_USED = "ALREADY_USED"
BELOW_MINIMUM = "BELOW_MINIMUM"


@dataclass(frozen=True)
class AppliedDiscount:
    code: str
    discount_type: str
    value: Decimal
    discount_amount: Decimal


@dataclass(frozen=True)
class DiscountRejection:
    reason: str
    message: str
    extra: dict[str, Any] = field(default_factory=dict)


def normalize_code(raw: str) -> str:
    return raw.strip().upper()


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def compute_discount_amount(
    discount_type: str,
    value: Decimal,
    subtotal: Decimal,
) -> Decimal:
    """
    percentage: subtotal * value / 100
    fixed:      min(value, subtotal), so the payable amount never goes negative
    """
    if discount_type == "percentage":
        return to_money(subtotal * value / Decimal(100))
    return to_money(min(value, subtotal))


def validate_discount(
    discount: DiscountCode | None,
    cart_subtotal: Decimal,
    now: datetime | None = None,
    already_used: bool = False,
) -> AppliedDiscount | DiscountRejection:
    now = _aware(now or datetime.now(timezone.utc))
    subtotal = to_money(cart_subtotal)

    if discount is None or not discount.is_active:
        return DiscountRejection(INVALID_CODE, "Invalid discount code")

    if discount.expires_at is not None and _aware(discount.expires_at) < now:
        return DiscountRejection(EXPIRED, "This discount code has expired")

    if discount.starts_at is not None and _aware(discount.starts_at) > now:
        return DiscountRejection(NOT_YET_ACTIVE, "This discount code is not yet active")

    if discount.max_uses is not None and discount.use_count >= discount.max_uses:
        return DiscountRejection(
            USAGE_LIMIT_REACHED,
            "This discount code has reached its usage limit",
        )

    if discount.once_per_user and already_used:
        return DiscountRejection(ALREADY_USED, "You have already used this discount code")

    if discount.min_order_amount is not None:
        minimum = to_money(discount.min_order_amount)
        if subtotal < minimum:
            return DiscountRejection(
                BELOW_MINIMUM,
                f"Minimum order amount of ₹{minimum} required",
                {"min_order_amount": minimum},
            )

    value = Decimal(discount.discount_value)
    return AppliedDiscount(
        code=discount.code,
        discount_type=discount.discount_type,
        value=value,
        discount_amount=compute_discount_amount(discount.discount_type, value, subtotal),
    )
