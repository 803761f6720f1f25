# app/services/cart_service.py
import logging
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.errors import CartConflict, DomainError, NotFound
from app.core.money import ZERO, to_money
from app.models.cart import CartItem, CartItemAddon
from app.models.product import Product
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    CartAddonRead,
    CartItemCreate,
    CartItemRead,
    CartItemUpdate,
    CartSummary,
)
from app.services.collision import decide_add, options_equal, pick_variant_key

logger = logging.getLogger(__name__)


class CartService:
    """
    Business logic for the cart.

    Responsibilities:
      - validate product existence, active flag and stock
      - merge-on-add through the collision resolver
      - keep add-ons in step with their cart line
      - return a freshly computed summary after every change, so callers
        never keep a stale item count or subtotal
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        addon_repo: CartAddonRepository,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.addon_repo = addon_repo

    # ---- internal helpers ----

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found")
        if not product.is_active:
            raise DomainError("Product is inactive", code="PRODUCT_INACTIVE")
        return product

    @staticmethod
    def _check_stock(product: Product, quantity: int) -> None:
        if product.stock_quantity is not None and quantity > product.stock_quantity:
            raise DomainError(
                "Not enough stock available",
                code="INSUFFICIENT_STOCK",
                available=product.stock_quantity,
                requested=quantity,
            )

    def get_owned_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
    ) -> CartItem:
        item = self.cart_repo.get_by_id(session, item_id)
        if not item or item.user_id != user_id:
            raise NotFound("Item not found in cart")
        return item

    @staticmethod
    def _line_view(item: CartItem) -> dict[str, Any]:
        return {
            "id": str(item.id),
            "quantity": item.quantity,
            "selected_options": dict(item.selected_options or {}),
        }

    # ---- pricing ----

    def addon_unit_price(
        self,
        session: Session,
        parent_product_id: uuid.UUID,
        addon: CartItemAddon,
        addon_product: Product | None,
    ) -> Decimal:
        """
        price_override of the product->add-on offer if set, else the add-on
        product's own price.
        """
        link = self.product_repo.get_addon_link(session, parent_product_id, addon.addon_product_id)
        if link is not None and link.price_override is not None:
            return to_money(link.price_override)
        if addon_product is None:
            return ZERO
        return to_money(addon_product.price)

    # ---- public operations ----

    def get_cart_summary(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Return full cart summary:
          - lines with current catalog data and their add-ons
          - item_count (sum of line quantities)
          - subtotal (lines + add-ons)
        """
        items = self.cart_repo.list_for_user(session, user_id)
        addons_by_item = self.addon_repo.list_for_items(session, [it.id for it in items])

        product_ids = [it.product_id for it in items]
        for addons in addons_by_item.values():
            product_ids.extend(a.addon_product_id for a in addons)
        products = self.product_repo.get_many(session, product_ids)

        item_reads: list[CartItemRead] = []
        item_count = 0
        subtotal = ZERO

        for it in items:
            product = products.get(it.product_id)
            unit_price = to_money(product.price) if product else ZERO
            line_total = to_money(unit_price * it.quantity)

            addon_reads: list[CartAddonRead] = []
            addons_total = ZERO
            for addon in addons_by_item[it.id]:
                addon_product = products.get(addon.addon_product_id)
                addon_price = self.addon_unit_price(session, it.product_id, addon, addon_product)
                addon_total = to_money(addon_price * addon.quantity)
                addons_total += addon_total
                addon_reads.append(
                    CartAddonRead(
                        id=addon.id,
                        cart_item_id=addon.cart_item_id,
                        addon_product_id=addon.addon_product_id,
                        name=addon_product.name if addon_product else None,
                        image_url=addon_product.hero_image_url if addon_product else None,
                        unit_price=addon_price,
                        quantity=addon.quantity,
                        selected_options=addon.selected_options or {},
                        line_total=addon_total,
                    )
                )

            item_count += it.quantity
            subtotal += line_total + addons_total

            item_reads.append(
                CartItemRead(
                    id=it.id,
                    product_id=it.product_id,
                    variant_key=it.variant_key,
                    quantity=it.quantity,
                    selected_options=it.selected_options or {},
                    product_name=product.name if product else None,
                    product_slug=product.slug if product else None,
                    product_image_url=product.hero_image_url if product else None,
                    unit_price=unit_price,
                    stock_quantity=product.stock_quantity if product else None,
                    line_total=line_total,
                    addons=addon_reads,
                    addons_total=addons_total,
                    created_at=it.created_at,
                    updated_at=it.updated_at,
                )
            )

        return CartSummary(
            items=item_reads,
            item_count=item_count,
            subtotal=to_money(subtotal),
        )

    def add_or_merge(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product to the cart.

        Rules:
          - product must exist and be active
          - same options as an existing line => quantities are summed
          - different options => CART_CONFLICT (409) unless the payload
            carries the customer's resolution (replace / separate)
          - resulting quantity must fit the stock
        """
        product = self._get_valid_product(session, payload.product_id)
        options = dict(payload.selected_options or {})

        try:
            self._apply_add(session, user_id, product, payload, options)
        except IntegrityError:
            # A concurrent request inserted the same line between our read
            # and our insert. Re-run once: it now resolves to a merge.
            session.rollback()
            logger.info("Cart insert race for user=%s product=%s, retrying as merge", user_id, product.id)
            self._apply_add(session, user_id, product, payload, options)

        return self.get_cart_summary(session, user_id)

    def _apply_add(
        self,
        session: Session,
        user_id: uuid.UUID,
        product: Product,
        payload: CartItemCreate,
        options: dict[str, Any],
    ) -> None:
        lines = self.cart_repo.list_for_product(session, user_id, product.id, for_update=True)

        if payload.resolution == "replace":
            target = next((ln for ln in lines if ln.id == payload.existing_item_id), None)
            if target is None:
                raise NotFound("Item not found in cart")
            others = [ln for ln in lines if ln.id != target.id]
            twin = next((ln for ln in others if options_equal(ln.selected_options, options)), None)
            if twin is not None:
                # Another line already is this selection: fold into it.
                self._check_stock(product, twin.quantity + payload.quantity)
                twin.quantity += payload.quantity
                self.cart_repo.fold_into(session, target, twin)
                logger.info("Replaced cart line %s by folding into %s for user=%s", target.id, twin.id, user_id)
                return

            self._check_stock(product, payload.quantity)
            target.quantity = payload.quantity
            target.selected_options = options
            target.variant_key = pick_variant_key(options, (ln.variant_key for ln in others))
            self.cart_repo.update(session, target)
            logger.info("Replaced cart line %s for user=%s", target.id, user_id)
            return

        # Prefer the line whose options already match; otherwise the oldest
        # line stands for "the product in the cart".
        existing = next(
            (ln for ln in lines if options_equal(ln.selected_options, options)),
            lines[0] if lines else None,
        )
        decision = decide_add(existing, payload.quantity, options)

        if decision.action == "merge":
            self._check_stock(product, decision.merged_quantity)
            existing.quantity = decision.merged_quantity
            existing.selected_options = options
            self.cart_repo.update(session, existing)
            logger.info(
                "Merged into cart line %s for user=%s (qty=%s)",
                existing.id,
                user_id,
                existing.quantity,
            )
            return

        if decision.action == "conflict" and payload.resolution != "separate":
            session.rollback()
            logger.info("Cart conflict for user=%s product=%s", user_id, product.id)
            raise CartConflict(
                existing=self._line_view(existing),
                proposed={"quantity": payload.quantity, "selected_options": options},
            )

        self._check_stock(product, payload.quantity)
        item = CartItem(
            user_id=user_id,
            product_id=product.id,
            variant_key=pick_variant_key(options, (ln.variant_key for ln in lines)),
            quantity=payload.quantity,
            selected_options=options,
        )
        self.cart_repo.create(session, item)
        logger.info("Inserted cart line %s for user=%s", item.id, user_id)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Set the quantity of a cart line. quantity < 1 removes the line
        (and its add-ons); a zero or negative quantity is never stored.
        """
        item = self.get_owned_item(session, user_id, item_id)

        if payload.quantity < 1:
            self.cart_repo.delete(session, item)
            return self.get_cart_summary(session, user_id)

        product = self._get_valid_product(session, item.product_id)
        self._check_stock(product, payload.quantity)

        item.quantity = payload.quantity
        self.cart_repo.update(session, item)

        return self.get_cart_summary(session, user_id)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
    ) -> CartSummary:
        """
        Remove a cart line and its add-ons, and return updated summary.
        """
        item = self.get_owned_item(session, user_id, item_id)
        self.cart_repo.delete(session, item)
        return self.get_cart_summary(session, user_id)

    def clear_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Clear all items from the cart and return an empty summary.
        """
        self.cart_repo.clear_user_cart(session, user_id)
        return CartSummary(items=[], item_count=0, subtotal=ZERO)
