import uuid
from decimal import Decimal

from sqlmodel import select

from app.core import notifications
from app.models.discount import DiscountCode
from app.models.order import Order
from app.models.user import User

from conftest import SHIPPING_ADDRESS, auth_headers, make_code, make_product, offer_addon

API = "/api/v1"


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_cart_requires_token(client):
    resp = client.get(f"{API}/cart")
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "UNAUTHENTICATED"


def test_bad_token_is_rejected(client):
    resp = client.get(f"{API}/cart", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "UNAUTHENTICATED"


def test_admin_cannot_use_customer_cart(client, admin_headers):
    resp = client.get(f"{API}/cart", headers=admin_headers)
    assert resp.status_code == 403


def test_conflict_then_replace(client, session, customer_headers):
    product = make_product(session)
    url = f"{API}/cart"

    first = client.post(url, json={"product_id": str(product.id), "selected_options": {"size": "M"}}, headers=customer_headers)
    assert first.status_code == 200
    line_id = first.json()["items"][0]["id"]

    conflict = client.post(
        url,
        json={"product_id": str(product.id), "quantity": 2, "selected_options": {"size": "L"}},
        headers=customer_headers,
    )
    assert conflict.status_code == 409
    detail = conflict.json()["detail"]
    assert detail["code"] == "CART_CONFLICT"
    assert detail["existing"] == {"id": line_id, "quantity": 1, "selected_options": {"size": "M"}}
    assert detail["proposed"] == {"quantity": 2, "selected_options": {"size": "L"}}

    replaced = client.post(
        url,
        json={
            "product_id": str(product.id),
            "quantity": 2,
            "selected_options": {"size": "L"},
            "resolution": "replace",
            "existing_item_id": line_id,
        },
        headers=customer_headers,
    )
    assert replaced.status_code == 200
    body = replaced.json()
    assert body["item_count"] == 2
    assert body["items"][0]["selected_options"] == {"size": "L"}
    assert Decimal(body["subtotal"]) == Decimal("2000.00")


def test_replace_without_target_is_422(client, session, customer_headers):
    product = make_product(session)
    resp = client.post(
        f"{API}/cart",
        json={"product_id": str(product.id), "resolution": "replace"},
        headers=customer_headers,
    )
    assert resp.status_code == 422


def test_patch_zero_removes_line(client, session, customer_headers):
    product = make_product(session)
    added = client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)
    line_id = added.json()["items"][0]["id"]

    resp = client.patch(f"{API}/cart/{line_id}", json={"quantity": 0}, headers=customer_headers)

    assert resp.status_code == 200
    assert resp.json()["items"] == []
    assert resp.json()["item_count"] == 0


def test_addon_routes(client, session, customer_headers):
    ring = make_product(session, price=Decimal("1000"))
    gift_box = make_product(session, price=Decimal("250"))
    offer_addon(session, ring, gift_box, price_override=Decimal("199"))
    line_id = client.post(f"{API}/cart", json={"product_id": str(ring.id)}, headers=customer_headers).json()["items"][0]["id"]

    attached = client.post(
        f"{API}/cart/{line_id}/addons",
        json={"addon_product_id": str(gift_box.id)},
        headers=customer_headers,
    )
    assert attached.status_code == 200
    addon = attached.json()["items"][0]["addons"][0]
    assert Decimal(addon["unit_price"]) == Decimal("199.00")
    assert Decimal(attached.json()["subtotal"]) == Decimal("1199.00")

    patched = client.patch(f"{API}/cart/addons/{addon['id']}", json={"quantity": 2}, headers=customer_headers)
    assert patched.json()["items"][0]["addons"][0]["quantity"] == 2

    removed = client.delete(f"{API}/cart/addons/{addon['id']}", headers=customer_headers)
    assert removed.json()["items"][0]["addons"] == []


def test_validate_below_minimum(client, session, customer_headers):
    make_code(session, code="SAVE10", min_order_amount=Decimal("500"))

    resp = client.post(
        f"{API}/discounts/validate",
        json={"code": "save10 ", "cart_subtotal": "499"},
        headers=customer_headers,
    )

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "BELOW_MINIMUM"
    assert detail["min_order_amount"] == 500


def test_validate_uses_cart_subtotal_when_omitted(client, session, customer_headers):
    make_code(session, code="SAVE10")
    product = make_product(session, price=Decimal("2500"))
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)

    resp = client.post(f"{API}/discounts/validate", json={"code": "SAVE10"}, headers=customer_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == "SAVE10"
    assert Decimal(body["discount_amount"]) == Decimal("250.00")


def test_checkout_flow(client, session, customer, customer_headers):
    make_code(session, code="SAVE10")
    product = make_product(session, price=Decimal("1000"))
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)

    resp = client.post(
        f"{API}/orders/checkout",
        json={
            "discount_code": "SAVE10",
            "shipping_amount": "50",
            "shipping_address": SHIPPING_ADDRESS,
            "payment_method": "card",
        },
        headers=customer_headers,
    )

    assert resp.status_code == 200
    order = resp.json()
    assert Decimal(order["total_amount"]) == Decimal("950.00")
    assert order["status"] == "pending"
    assert len(order["items"]) == 1

    assert client.get(f"{API}/cart", headers=customer_headers).json()["items"] == []

    mine = client.get(f"{API}/orders/me", headers=customer_headers).json()
    assert [o["id"] for o in mine] == [order["id"]]

    one = client.get(f"{API}/orders/me/{order['id']}", headers=customer_headers)
    assert one.status_code == 200
    assert one.json()["order_number"] == order["order_number"]

    usages = client.get(f"{API}/discounts/usages/me", headers=customer_headers).json()
    assert len(usages) == 1
    assert usages[0]["order_id"] == order["id"]


def test_checkout_with_dead_code_is_409(client, session, customer_headers):
    make_code(session, code="GONE", is_active=False)
    product = make_product(session)
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)

    resp = client.post(
        f"{API}/orders/checkout",
        json={"discount_code": "GONE", "shipping_address": SHIPPING_ADDRESS, "payment_method": "cod"},
        headers=customer_headers,
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "DISCOUNT_NO_LONGER_VALID"
    assert resp.json()["detail"]["reason"] == "INVALID_CODE"
    assert len(client.get(f"{API}/cart", headers=customer_headers).json()["items"]) == 1


def test_checkout_sends_confirmation(client, session, customer, customer_headers, monkeypatch):
    sent = []

    class FakeFunctions:
        def invoke(self, name, invoke_options):
            sent.append((name, invoke_options["body"]))

    class FakeClient:
        functions = FakeFunctions()

    monkeypatch.setattr(notifications.get_settings(), "ORDER_EMAIL_ENABLED", True)
    monkeypatch.setattr(notifications, "supabase_public", lambda: FakeClient())

    product = make_product(session, name="Polki Ring", price=Decimal("1500"))
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)
    resp = client.post(
        f"{API}/orders/checkout",
        json={"shipping_address": SHIPPING_ADDRESS, "payment_method": "upi"},
        headers=customer_headers,
    )

    assert resp.status_code == 200
    assert len(sent) == 1
    name, body = sent[0]
    assert name == "send-order-email"
    assert body["to"] == customer.email
    assert body["orderNumber"] == resp.json()["order_number"]
    assert body["items"][0]["name"] == "Polki Ring"
    assert body["total"] == 1500.0
    assert body["shippingAddress"]["pinCode"] == "560001"


def test_failed_confirmation_does_not_fail_checkout(client, session, customer_headers, monkeypatch):
    def boom():
        raise ConnectionError("edge function down")

    monkeypatch.setattr(notifications.get_settings(), "ORDER_EMAIL_ENABLED", True)
    monkeypatch.setattr(notifications, "supabase_public", boom)

    product = make_product(session)
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)
    resp = client.post(
        f"{API}/orders/checkout",
        json={"shipping_address": SHIPPING_ADDRESS, "payment_method": "upi"},
        headers=customer_headers,
    )

    assert resp.status_code == 200
    session.expire_all()
    assert len(session.exec(select(Order)).all()) == 1


# ---- admin ----


def test_admin_creates_normalized_code(client, session, admin_headers):
    resp = client.post(
        f"{API}/discounts",
        json={"code": "  diwali25 ", "discount_type": "percentage", "discount_value": "25", "max_uses": 100},
        headers=admin_headers,
    )

    assert resp.status_code == 201
    assert resp.json()["code"] == "DIWALI25"
    assert resp.json()["use_count"] == 0

    dup = client.post(
        f"{API}/discounts",
        json={"code": "Diwali25", "discount_value": "10"},
        headers=admin_headers,
    )
    assert dup.status_code == 400
    assert dup.json()["detail"]["code"] == "DUPLICATE_CODE"


def test_admin_rejects_percentage_over_100(client, admin_headers):
    resp = client.post(
        f"{API}/discounts",
        json={"code": "TOOMUCH", "discount_type": "percentage", "discount_value": "150"},
        headers=admin_headers,
    )
    assert resp.status_code == 422


def test_admin_window_with_mixed_timezones(client, admin_headers):
    backwards = client.post(
        f"{API}/discounts",
        json={
            "code": "NEWYEAR",
            "discount_value": "10",
            "starts_at": "2026-01-01T00:00:00+00:00",
            "expires_at": "2025-12-01T00:00:00",
        },
        headers=admin_headers,
    )
    assert backwards.status_code == 422

    ok = client.post(
        f"{API}/discounts",
        json={
            "code": "NEWYEAR",
            "discount_value": "10",
            "starts_at": "2026-01-01T00:00:00",
            "expires_at": "2026-01-31T00:00:00+05:30",
        },
        headers=admin_headers,
    )
    assert ok.status_code == 201


def test_admin_cannot_cap_below_use_count(client, session, admin_headers):
    code = make_code(session, code="POPULAR", max_uses=10, use_count=3)

    bad = client.patch(f"{API}/discounts/{code.id}", json={"max_uses": 1}, headers=admin_headers)
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "INVALID_DISCOUNT"
    assert bad.json()["detail"]["use_count"] == 3

    ok = client.patch(f"{API}/discounts/{code.id}", json={"max_uses": 3}, headers=admin_headers)
    assert ok.status_code == 200
    assert ok.json()["max_uses"] == 3


def test_admin_updates_and_deletes_code(client, session, admin_headers):
    code = make_code(session, code="SUMMER")

    patched = client.patch(f"{API}/discounts/{code.id}", json={"is_active": False}, headers=admin_headers)
    assert patched.status_code == 200
    assert patched.json()["is_active"] is False

    bad = client.patch(f"{API}/discounts/{code.id}", json={"discount_value": "120"}, headers=admin_headers)
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "INVALID_DISCOUNT"

    deleted = client.delete(f"{API}/discounts/{code.id}", headers=admin_headers)
    assert deleted.status_code == 204
    session.expire_all()
    assert session.exec(select(DiscountCode)).all() == []


def test_customer_cannot_reach_admin_routes(client, customer_headers):
    assert client.get(f"{API}/discounts", headers=customer_headers).status_code == 403
    assert client.get(f"{API}/orders", headers=customer_headers).status_code == 403
    resp = client.post(f"{API}/discounts", json={"code": "X", "discount_value": "5"}, headers=customer_headers)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "FORBIDDEN"


def test_admin_status_patch(client, session, customer_headers, admin_headers):
    product = make_product(session)
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=customer_headers)
    order = client.post(
        f"{API}/orders/checkout",
        json={"shipping_address": SHIPPING_ADDRESS, "payment_method": "cod"},
        headers=customer_headers,
    ).json()

    ok = client.patch(f"{API}/orders/{order['id']}/status", json={"status": "confirmed"}, headers=admin_headers)
    assert ok.status_code == 200
    assert ok.json()["status"] == "confirmed"

    skip = client.patch(f"{API}/orders/{order['id']}/status", json={"status": "delivered"}, headers=admin_headers)
    assert skip.status_code == 400
    assert skip.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    listed = client.get(f"{API}/orders", params={"status": "confirmed"}, headers=admin_headers).json()
    assert [o["id"] for o in listed] == [order["id"]]

    full = client.get(f"{API}/orders/{order['id']}", headers=admin_headers)
    assert full.status_code == 200
    assert len(full.json()["items"]) == 1


def test_new_token_provisions_profile(client, session):
    user_id = uuid.uuid4()
    resp = client.get(f"{API}/cart", headers=auth_headers(user_id, "newbie@example.com"))

    assert resp.status_code == 200
    session.expire_all()
    user = session.get(User, user_id)
    assert user is not None
    assert user.role == "user"
