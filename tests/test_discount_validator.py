from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.core.errors import DiscountRejected
from app.models.discount import DiscountCode
from app.services.discount_validator import (
    ALREADY_USED,
    BELOW_MINIMUM,
    EXPIRED,
    INVALID_CODE,
    NOT_YET_ACTIVE,
    USAGE_LIMIT_REACHED,
    AppliedDiscount,
    DiscountRejection,
    validate_discount,
)
from app.services.order_service import compute_total

from conftest import make_code

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _code(**overrides):
    data = {"code": "SAVE10", "discount_type": "percentage", "discount_value": Decimal("10")}
    data.update(overrides)
    return DiscountCode(**data)


def test_missing_code_is_invalid():
    result = validate_discount(None, Decimal("1000"), now=NOW)
    assert isinstance(result, DiscountRejection)
    assert result.reason == INVALID_CODE


def test_inactive_code_is_invalid():
    result = validate_discount(_code(is_active=False), Decimal("1000"), now=NOW)
    assert result.reason == INVALID_CODE


def test_expired():
    result = validate_discount(_code(expires_at=NOW - timedelta(seconds=1)), Decimal("1000"), now=NOW)
    assert result.reason == EXPIRED


def test_not_yet_active():
    result = validate_discount(_code(starts_at=NOW + timedelta(days=1)), Decimal("1000"), now=NOW)
    assert result.reason == NOT_YET_ACTIVE


def test_naive_timestamps_are_treated_as_utc():
    naive_past = (NOW - timedelta(hours=1)).replace(tzinfo=None)
    result = validate_discount(_code(expires_at=naive_past), Decimal("1000"), now=NOW)
    assert result.reason == EXPIRED


def test_usage_limit_reached_even_when_active_and_in_window():
    code = _code(
        max_uses=1,
        use_count=1,
        is_active=True,
        starts_at=NOW - timedelta(days=1),
        expires_at=NOW + timedelta(days=1),
    )
    result = validate_discount(code, Decimal("1000"), now=NOW)
    assert result.reason == USAGE_LIMIT_REACHED


def test_first_failing_check_wins():
    # expired AND over the limit AND below minimum: expiry is reported
    code = _code(
        expires_at=NOW - timedelta(days=1),
        max_uses=1,
        use_count=5,
        min_order_amount=Decimal("5000"),
    )
    assert validate_discount(code, Decimal("10"), now=NOW).reason == EXPIRED


def test_once_per_user():
    code = _code(once_per_user=True)
    assert validate_discount(code, Decimal("1000"), now=NOW, already_used=True).reason == ALREADY_USED
    assert isinstance(validate_discount(code, Decimal("1000"), now=NOW), AppliedDiscount)


def test_below_minimum_carries_minimum():
    result = validate_discount(_code(min_order_amount=Decimal("500")), Decimal("499"), now=NOW)
    assert result.reason == BELOW_MINIMUM
    assert result.extra["min_order_amount"] == Decimal("500.00")


def test_minimum_is_inclusive():
    result = validate_discount(_code(min_order_amount=Decimal("500")), Decimal("500"), now=NOW)
    assert isinstance(result, AppliedDiscount)
    assert result.discount_amount == Decimal("50.00")


@pytest.mark.parametrize(
    "subtotal, expected",
    [
        (Decimal("1000"), Decimal("100.00")),
        (Decimal("1234.50"), Decimal("123.45")),
        (Decimal("0.10"), Decimal("0.01")),
    ],
)
def test_percentage_is_exact_to_the_paisa(subtotal, expected):
    result = validate_discount(_code(), subtotal, now=NOW)
    assert result.discount_amount == expected


def test_fixed_discount_is_clamped_to_subtotal():
    result = validate_discount(
        _code(discount_type="fixed", discount_value=Decimal("1500")),
        Decimal("1200"),
        now=NOW,
    )
    assert result.discount_amount == Decimal("1200.00")
    assert compute_total(Decimal("1200"), result.discount_amount, Decimal("0"), Decimal("0")) == Decimal("0.00")


def test_fixed_discount_below_subtotal():
    result = validate_discount(
        _code(discount_type="fixed", discount_value=Decimal("250")),
        Decimal("1200"),
        now=NOW,
    )
    assert result.discount_amount == Decimal("250.00")
    assert result.discount_type == "fixed"
    assert result.code == "SAVE10"


def test_total_formula():
    assert compute_total(Decimal("1000"), Decimal("100"), Decimal("50"), Decimal("0")) == Decimal("950.00")
    assert compute_total(Decimal("100"), Decimal("500"), Decimal("0"), Decimal("0")) == Decimal("0.00")


# ---- lookup through the service ----


def test_lookup_is_case_and_whitespace_insensitive(session, customer, discount_service):
    make_code(session, code="SAVE10", min_order_amount=Decimal("500"))

    with pytest.raises(DiscountRejected) as exc:
        discount_service.validate(session, customer.id, "save10 ", Decimal("499"))
    assert exc.value.reason == BELOW_MINIMUM
    assert exc.value.status_code == 400
    assert exc.value.detail["min_order_amount"] == 500

    applied = discount_service.validate(session, customer.id, "SAVE10", Decimal("1000"))
    assert applied.discount_amount == Decimal("100.00")


def test_unknown_code_rejected(session, customer, discount_service):
    with pytest.raises(DiscountRejected) as exc:
        discount_service.validate(session, customer.id, "NOPE", Decimal("1000"))
    assert exc.value.detail["code"] == INVALID_CODE
