# app/core/notifications.py
"""
Order confirmation e-mails.

The e-mail itself is rendered and sent by the Supabase edge function
configured in ORDER_EMAIL_FUNCTION; the backend only posts the order data.
"""
import logging
from typing import Any

from app.core.config import get_settings
from app.core.supabase_client import supabase_public
from app.models.order import Order, OrderItem
from app.models.user import User

logger = logging.getLogger(__name__)


def build_order_email_payload(
    user: User,
    order: Order,
    items: list[OrderItem],
) -> dict[str, Any]:
    """
    Body expected by the send-order-email function.
    """
    address = order.shipping_address or {}
    return {
        "to": user.email,
        "orderNumber": order.order_number,
        "customerName": user.full_name or address.get("first_name") or user.email,
        "items": [
            {
                "name": (it.product_snapshot or {}).get("name"),
                "quantity": it.quantity,
                "price": float(it.price),
                "image": (it.product_snapshot or {}).get("image"),
            }
            for it in items
        ],
        "subtotal": float(order.subtotal),
        "shipping": float(order.shipping_amount),
        "discount": float(order.discount_amount),
        "total": float(order.total_amount),
        "shippingAddress": {
            "firstName": address.get("first_name"),
            "lastName": address.get("last_name"),
            "address": address.get("address"),
            "city": address.get("city"),
            "state": address.get("state"),
            "pinCode": address.get("pin_code"),
            "country": address.get("country"),
        },
    }


def send_order_confirmation(user: User, order: Order, items: list[OrderItem]) -> bool:
    """
    Fire the confirmation e-mail. The order is already committed, so a
    failure here is logged and reported as False, never raised.
    """
    settings = get_settings()
    if not settings.ORDER_EMAIL_ENABLED:
        return False

    try:
        supabase_public().functions.invoke(
            settings.ORDER_EMAIL_FUNCTION,
            invoke_options={"body": build_order_email_payload(user, order, items)},
        )
    except Exception:
        logger.warning(
            "Order confirmation for %s could not be sent",
            order.order_number,
            exc_info=True,
        )
        return False

    logger.info("Order confirmation for %s sent to %s", order.order_number, user.email)
    return True
