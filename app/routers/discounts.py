# app/routers/discounts.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_admin, require_user
from app.database import get_session
from app.models.user import User
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.discount import (
    AppliedDiscountRead,
    DiscountCodeCreate,
    DiscountCodeRead,
    DiscountCodeUpdate,
    DiscountUsageRead,
    DiscountValidateRequest,
)
from app.services.cart_service import CartService
from app.services.discount_service import DiscountService

router = APIRouter(prefix="/discounts", tags=["Discounts"])

cart_service = CartService(CartRepository(), ProductRepository(), CartAddonRepository())
service = DiscountService(DiscountRepository(), cart_service)


# -------- Customer endpoints --------


@router.post("/validate", response_model=AppliedDiscountRead)
def validate_code(
    payload: DiscountValidateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Preview a discount code against the cart.

    Rejections come back as 400 with detail.code set to INVALID_CODE,
    EXPIRED, NOT_YET_ACTIVE, USAGE_LIMIT_REACHED, ALREADY_USED or
    BELOW_MINIMUM (with min_order_amount). Checkout validates again.
    """
    return service.preview(session, current_user.id, payload)


@router.get("/usages/me", response_model=list[DiscountUsageRead])
def list_my_usages(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Discount codes the current user has redeemed, newest first.
    """
    return service.list_my_usages(session, current_user.id)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[DiscountCodeRead],
    dependencies=[Depends(require_admin)],
)
def list_codes(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    return service.list_codes(session, skip, limit)


@router.post(
    "",
    response_model=DiscountCodeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_code(
    payload: DiscountCodeCreate,
    session: Session = Depends(get_session),
):
    return service.create_code(session, payload)


@router.patch(
    "/{code_id}",
    response_model=DiscountCodeRead,
    dependencies=[Depends(require_admin)],
)
def update_code(
    code_id: uuid.UUID,
    payload: DiscountCodeUpdate,
    session: Session = Depends(get_session),
):
    return service.update_code(session, code_id, payload)


@router.delete(
    "/{code_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_code(
    code_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a code that was never redeemed. Redeemed codes must be
    deactivated instead.
    """
    service.delete_code(session, code_id)
