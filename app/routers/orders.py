# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_user, require_admin
from app.database import get_session
from app.models.user import User
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderWithItemsRead,
    OrderStatus,
    OrderStatusUpdate,
)
from app.services.cart_service import CartService
from app.services.discount_service import DiscountService
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
cart_repo = CartRepository()
addon_repo = CartAddonRepository()
product_repo = ProductRepository()
discount_repo = DiscountRepository()
cart_service = CartService(cart_repo, product_repo, addon_repo)
discount_service = DiscountService(discount_repo, cart_service)
service = OrderService(
    order_repo,
    cart_repo,
    addon_repo,
    product_repo,
    discount_repo,
    cart_service,
    discount_service,
)


# -------- User-facing endpoints --------


@router.post(
    "/checkout",
    response_model=OrderWithItemsRead,
    responses={
        409: {"description": "DISCOUNT_NO_LONGER_VALID"},
        500: {"description": "ORDER_COMPILE_FAILED (cart left intact)"},
    },
)
def checkout(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Turn the current user's cart into an order.

    If the discount code stopped being valid since the preview, the
    answer is 409 DISCOUNT_NO_LONGER_VALID and nothing is written; the
    client must ask the customer again instead of dropping the code.
    """
    return service.compile_order(session, current_user, payload)


@router.get(
    "/me",
    response_model=list[OrderRead],
)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated user's orders (without items).
    """
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.get(
    "/me/{order_id}",
    response_model=OrderWithItemsRead,
)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get a single order (with items) belonging to the current user.
    """
    return service.get_user_order(session, current_user.id, order_id)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    status: OrderStatus | None = None,
):
    """
    List all orders (admin only), optionally filtered by status.
    """
    return service.list_all_orders(session, skip, limit, status)


@router.get(
    "/{order_id}",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get any order with items (admin only).
    """
    return service.get_order_admin(session, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Move an order and/or its payment along (admin only).

      pending -> confirmed -> processing -> shipped -> delivered

      cancelled / refunded from any state before delivered

      payment: pending -> paid | failed, paid -> refunded

    """
    return service.update_status(session, order_id, payload)
