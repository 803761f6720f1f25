# app/routers/addons.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_user
from app.database import get_session
from app.models.user import User
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.addon import CartAddonCreate, CartAddonUpdate
from app.schemas.cart import CartSummary
from app.services.addon_service import AddonService
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart add-ons"])

product_repo = ProductRepository()
addon_repo = CartAddonRepository()
cart_service = CartService(CartRepository(), product_repo, addon_repo)
service = AddonService(addon_repo, product_repo, cart_service)


@router.post("/{item_id}/addons", response_model=CartSummary)
def attach_addon(
    item_id: uuid.UUID,
    payload: CartAddonCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Attach an add-on product (gift box, polishing kit, ...) to a cart line.
    """
    return service.attach(session, current_user.id, item_id, payload)


@router.delete("/{item_id}/addons", response_model=CartSummary)
def clear_addons(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Remove every add-on from a cart line.
    """
    return service.clear_all(session, current_user.id, item_id)


@router.patch("/addons/{addon_id}", response_model=CartSummary)
def update_addon(
    addon_id: uuid.UUID,
    payload: CartAddonUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.update(session, current_user.id, addon_id, payload)


@router.delete("/addons/{addon_id}", response_model=CartSummary)
def detach_addon(
    addon_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.detach(session, current_user.id, addon_id)
