# app/services/order_service.py
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import (
    DiscountNoLongerValid,
    DomainError,
    NotFound,
    OrderCompileFailed,
)
from app.core.money import ZERO, to_money
from app.core.notifications import send_order_confirmation
from app.models.cart import CartItem, CartItemAddon
from app.models.discount import DiscountCodeUsage
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.user import User
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from app.services.cart_service import CartService
from app.services.discount_service import DiscountService
from app.services.discount_validator import USAGE_LIMIT_REACHED, DiscountRejection

logger = logging.getLogger(__name__)

# Forward path; cancelled / refunded can be reached from any state that is
# not delivered or already terminal.
STATUS_FLOW: dict[str, set[str]] = {
    "pending": {"confirmed"},
    "confirmed": {"processing"},
    "processing": {"shipped"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
    "refunded": set(),
}
TERMINAL_ESCAPES = {"cancelled", "refunded"}

PAYMENT_FLOW: dict[str, set[str]] = {
    "pending": {"paid", "failed"},
    "paid": {"refunded"},
    "failed": set(),
    "refunded": set(),
}


def can_transition(current: str, new: str) -> bool:
    if new in STATUS_FLOW.get(current, set()):
        return True
    return new in TERMINAL_ESCAPES and current not in {"delivered", *TERMINAL_ESCAPES}


def compute_total(
    subtotal: Decimal,
    discount_amount: Decimal,
    shipping_amount: Decimal,
    tax_amount: Decimal,
) -> Decimal:
    """subtotal - discount + shipping + tax, floored at zero."""
    total = to_money(subtotal) - to_money(discount_amount) + to_money(shipping_amount) + to_money(tax_amount)
    return max(ZERO, to_money(total))


@dataclass
class PricedAddon:
    addon: CartItemAddon
    product: Product
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return to_money(self.unit_price * self.addon.quantity)


@dataclass
class PricedLine:
    item: CartItem
    product: Product
    unit_price: Decimal
    addons: list[PricedAddon] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return to_money(self.unit_price * self.item.quantity)


def _snapshot(product: Product, options: dict | None) -> dict:
    return {
        "name": product.name,
        "image": product.hero_image_url,
        "slug": product.slug,
        "selected_options": dict(options or {}),
    }


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Compile the cart into an immutable order (one transaction)
      - Re-validate the discount code at checkout time
      - Enforce order / payment status transitions (admin)
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        addon_repo: CartAddonRepository,
        product_repo: ProductRepository,
        discount_repo: DiscountRepository,
        cart_service: CartService,
        discount_service: DiscountService,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.addon_repo = addon_repo
        self.product_repo = product_repo
        self.discount_repo = discount_repo
        self.cart_service = cart_service
        self.discount_service = discount_service

    # -------- Checkout --------

    def _price_cart(
        self,
        session: Session,
        cart_items: list[CartItem],
    ) -> list[PricedLine]:
        """
        Re-read the catalog and validate every line and add-on:
        product exists, is active, and the summed quantity fits the stock.
        """
        addons_by_item = self.addon_repo.list_for_items(session, [ci.id for ci in cart_items])

        product_ids = [ci.product_id for ci in cart_items]
        for addons in addons_by_item.values():
            product_ids.extend(a.addon_product_id for a in addons)
        products = self.product_repo.get_many(session, product_ids)

        errors: list[dict[str, str]] = []
        requested: dict[uuid.UUID, int] = defaultdict(int)

        def check(product_id: uuid.UUID) -> Product | None:
            product = products.get(product_id)
            if product is None:
                errors.append({"product_id": str(product_id), "reason": "Product not found"})
                return None
            if not product.is_active:
                errors.append({"product_id": str(product_id), "reason": "Product is inactive"})
                return None
            return product

        lines: list[PricedLine] = []
        for ci in cart_items:
            product = check(ci.product_id)
            if product is None:
                continue
            requested[product.id] += ci.quantity
            line = PricedLine(item=ci, product=product, unit_price=to_money(product.price))

            for addon in addons_by_item[ci.id]:
                addon_product = check(addon.addon_product_id)
                if addon_product is None:
                    continue
                requested[addon_product.id] += addon.quantity
                price = self.cart_service.addon_unit_price(session, ci.product_id, addon, addon_product)
                line.addons.append(PricedAddon(addon=addon, product=addon_product, unit_price=price))

            lines.append(line)

        for product_id, quantity in requested.items():
            stock = products[product_id].stock_quantity
            if stock is not None and quantity > stock:
                errors.append(
                    {
                        "product_id": str(product_id),
                        "reason": f"Insufficient stock (have {stock}, requested {quantity})",
                    }
                )

        if errors:
            raise DomainError(
                "Cart validation failed",
                code="CART_VALIDATION_FAILED",
                items=errors,
            )
        return lines

    def _take_stock(self, session: Session, product: Product, quantity: int) -> None:
        if not self.product_repo.decrement_stock(session, product, quantity):
            logger.info("Stock for product=%s ran out during checkout", product.id)
            raise DomainError(
                "Not enough stock available",
                code="INSUFFICIENT_STOCK",
                product_id=str(product.id),
                requested=quantity,
            )

    def compile_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Convert the current user's cart into an Order.

        Steps:
          1. Load and re-price the cart; error if empty or invalid.
          2. subtotal = lines + add-ons (add-on price_override wins).
          3. Re-validate the discount code under a row lock, then take a
             usage slot with the guarded increment.
          4. total = subtotal - discount + shipping + tax (>= 0).
          5. Draw the order number from the store sequence.
          6. Write order, order lines (add-ons as child lines), usage row,
             stock decrement, and clear the cart.
          7. Commit once. Any failure rolls everything back; the cart is
             left as it was.
        """
        settings = get_settings()

        cart_items = self.cart_repo.list_for_user(session, user.id)
        if not cart_items:
            raise DomainError("Cart is empty", code="CART_EMPTY")

        lines = self._price_cart(session, cart_items)
        subtotal = to_money(sum((ln.total + sum((a.total for a in ln.addons), ZERO) for ln in lines), ZERO))

        try:
            discount_record = None
            discount_amount = ZERO
            if payload.discount_code:
                discount_record, result = self.discount_service.evaluate(
                    session,
                    user.id,
                    payload.discount_code,
                    subtotal,
                    for_update=True,
                )
                if isinstance(result, DiscountRejection):
                    raise DiscountNoLongerValid(result.reason, result.message)
                if not self.discount_repo.increment_use_count(session, discount_record.id):
                    raise DiscountNoLongerValid(
                        USAGE_LIMIT_REACHED,
                        "This discount code has reached its usage limit",
                    )
                discount_amount = result.discount_amount

            shipping_amount = to_money(payload.shipping_amount)
            tax_amount = to_money(payload.tax_amount)
            shipping_address = payload.shipping_address.model_dump()
            billing_address = (
                payload.billing_address.model_dump() if payload.billing_address else shipping_address
            )

            order = Order(
                order_number=self.order_repo.next_order_number(session, settings.ORDER_NUMBER_PREFIX),
                user_id=user.id,
                status="pending",
                payment_status="pending",
                payment_method=payload.payment_method,
                subtotal=subtotal,
                discount_code=discount_record.code if discount_record else None,
                discount_amount=discount_amount,
                shipping_amount=shipping_amount,
                tax_amount=tax_amount,
                total_amount=compute_total(subtotal, discount_amount, shipping_amount, tax_amount),
                shipping_address=shipping_address,
                billing_address=billing_address,
                notes=payload.notes,
            )
            order = self.order_repo.create_order(session, order)

            for ln in lines:
                parent = self.order_repo.create_item(
                    session,
                    OrderItem(
                        order_id=order.id,
                        product_id=ln.product.id,
                        quantity=ln.item.quantity,
                        price=ln.unit_price,
                        total=ln.total,
                        product_snapshot=_snapshot(ln.product, ln.item.selected_options),
                    ),
                )
                self._take_stock(session, ln.product, ln.item.quantity)

                for pa in ln.addons:
                    self.order_repo.create_item(
                        session,
                        OrderItem(
                            order_id=order.id,
                            product_id=pa.product.id,
                            parent_item_id=parent.id,
                            quantity=pa.addon.quantity,
                            price=pa.unit_price,
                            total=pa.total,
                            product_snapshot=_snapshot(pa.product, pa.addon.selected_options),
                        ),
                    )
                    self._take_stock(session, pa.product, pa.addon.quantity)

            if discount_record is not None:
                self.discount_repo.add_usage(
                    session,
                    DiscountCodeUsage(
                        discount_code_id=discount_record.id,
                        user_id=user.id,
                        order_id=order.id,
                    ),
                )

            self.cart_repo.clear_user_cart(session, user.id, commit=False)
            session.commit()
        except DomainError:
            session.rollback()
            raise
        except Exception as exc:
            session.rollback()
            logger.exception("Order compilation failed for user=%s", user.id)
            raise OrderCompileFailed(exc) from exc

        session.refresh(order)
        items = self.order_repo.list_items_for_order(session, order.id)
        logger.info(
            "Order %s placed by user=%s total=%s discount=%s",
            order.order_number,
            user.id,
            order.total_amount,
            order.discount_code or "-",
        )

        send_order_confirmation(user, order, items)
        return self._build_order_with_items_dto(order, items)

    # -------- User-facing reads --------

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        List orders for the given user (without items).
        """
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return orders  # type: ignore[return-value]

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        404 if the order does not exist or belongs to someone else.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise NotFound("Order not found")

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_all(session, skip, limit, status)
        return orders  # type: ignore[return-value]

    def get_order_admin(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update.

          pending -> confirmed -> processing -> shipped -> delivered
          any non-delivered, non-terminal state -> cancelled | refunded

          payment: pending -> paid | failed, paid -> refunded

        Cancelling or refunding does not give the discount usage back.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")

        new_status = payload.status
        new_payment = payload.payment_status

        if new_status and new_status != order.status and not can_transition(order.status, new_status):
            raise DomainError(
                f"Invalid status transition: {order.status} -> {new_status}",
                code="INVALID_STATUS_TRANSITION",
            )
        if (
            new_payment
            and new_payment != order.payment_status
            and new_payment not in PAYMENT_FLOW.get(order.payment_status, set())
        ):
            raise DomainError(
                f"Invalid payment status transition: {order.payment_status} -> {new_payment}",
                code="INVALID_STATUS_TRANSITION",
            )

        if new_status:
            order.status = new_status
        if new_payment:
            order.payment_status = new_payment

        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        logger.info(
            "Order %s is now %s / payment %s",
            order.order_number,
            order.status,
            order.payment_status,
        )
        return order  # type: ignore[return-value]

    # -------- Helper DTO builder --------

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        return OrderWithItemsRead(
            **OrderRead.model_validate(order).model_dump(),
            items=[OrderItemRead.model_validate(it) for it in items],
        )
