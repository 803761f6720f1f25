# app/services/addon_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import DomainError, NotFound
from app.models.cart import CartItemAddon
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.addon import CartAddonCreate, CartAddonUpdate
from app.schemas.cart import CartSummary
from app.services.cart_service import CartService

logger = logging.getLogger(__name__)


class AddonService:
    """
    Attach / edit / detach add-on products on a cart line.

    There is no collision policy here: attaching the same add-on twice
    gives two add-on rows.
    """

    def __init__(
        self,
        addon_repo: CartAddonRepository,
        product_repo: ProductRepository,
        cart_service: CartService,
    ):
        self.addon_repo = addon_repo
        self.product_repo = product_repo
        self.cart_service = cart_service

    def _get_owned_addon(
        self,
        session: Session,
        user_id: uuid.UUID,
        addon_id: uuid.UUID,
    ) -> CartItemAddon:
        addon = self.addon_repo.get_by_id(session, addon_id)
        if addon is None:
            raise NotFound("Add-on not found")
        # ownership goes through the parent line
        self.cart_service.get_owned_item(session, user_id, addon.cart_item_id)
        return addon

    def attach(
        self,
        session: Session,
        user_id: uuid.UUID,
        cart_item_id: uuid.UUID,
        payload: CartAddonCreate,
    ) -> CartSummary:
        """
        The add-on product must be active and offered (active
        product_addons row) for the cart line's product.
        """
        item = self.cart_service.get_owned_item(session, user_id, cart_item_id)

        addon_product = self.product_repo.get_by_id(session, payload.addon_product_id)
        if addon_product is None or not addon_product.is_active:
            raise NotFound("Add-on product not found")

        entry = self.product_repo.get_product(session, item.product_id)
        offered = {link.addon_product_id for link in entry.addons} if entry else set()
        if addon_product.id not in offered:
            raise DomainError(
                "This add-on is not offered for the product",
                code="ADDON_NOT_OFFERED",
            )

        addon = CartItemAddon(
            cart_item_id=item.id,
            addon_product_id=addon_product.id,
            quantity=payload.quantity,
            selected_options=dict(payload.selected_options or {}),
        )
        self.addon_repo.create(session, addon)
        logger.info("Attached add-on %s to cart line %s", addon_product.id, item.id)

        return self.cart_service.get_cart_summary(session, user_id)

    def update(
        self,
        session: Session,
        user_id: uuid.UUID,
        addon_id: uuid.UUID,
        payload: CartAddonUpdate,
    ) -> CartSummary:
        addon = self._get_owned_addon(session, user_id, addon_id)

        data = payload.model_dump(exclude_unset=True)
        if data.get("quantity") is not None:
            addon.quantity = data["quantity"]
        if data.get("selected_options") is not None:
            addon.selected_options = dict(data["selected_options"])

        self.addon_repo.update(session, addon)
        return self.cart_service.get_cart_summary(session, user_id)

    def detach(
        self,
        session: Session,
        user_id: uuid.UUID,
        addon_id: uuid.UUID,
    ) -> CartSummary:
        addon = self._get_owned_addon(session, user_id, addon_id)
        self.addon_repo.delete(session, addon)
        return self.cart_service.get_cart_summary(session, user_id)

    def clear_all(
        self,
        session: Session,
        user_id: uuid.UUID,
        cart_item_id: uuid.UUID,
    ) -> CartSummary:
        item = self.cart_service.get_owned_item(session, user_id, cart_item_id)
        removed = self.addon_repo.clear_for_item(session, item.id)
        logger.info("Cleared %s add-on(s) from cart line %s", removed, item.id)
        return self.cart_service.get_cart_summary(session, user_id)
