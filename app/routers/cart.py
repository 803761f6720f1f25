# app/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_user
from app.database import get_session
from app.models.user import User
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import CartSummary, CartItemCreate, CartItemUpdate
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
addon_repo = CartAddonRepository()
service = CartService(cart_repo, product_repo, addon_repo)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get current user's cart with catalog data and add-ons joined in.
    """
    return service.get_cart_summary(session, current_user.id)


@router.post(
    "",
    response_model=CartSummary,
    responses={409: {"description": "CART_CONFLICT: product already in cart with other options"}},
)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Add a product to the cart, merging with an identical line.

    On 409 CART_CONFLICT the client shows the existing and proposed lines
    and resends with resolution="replace" (plus existing_item_id) or
    resolution="separate".
    """
    return service.add_or_merge(session, current_user.id, payload)


@router.patch("/{item_id}", response_model=CartSummary)
def update_cart_item(
    item_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Set the quantity of a cart line; quantity < 1 removes it.
    """
    return service.update_quantity(
        session=session,
        user_id=current_user.id,
        item_id=item_id,
        payload=payload,
    )


@router.delete("/{item_id}", response_model=CartSummary)
def remove_cart_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Remove a cart line together with its add-ons.
    """
    return service.remove_item(session, current_user.id, item_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Clear the entire cart.
    """
    return service.clear_cart(session, current_user.id)
