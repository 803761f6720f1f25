# app/repositories/product_repo.py
import uuid
from dataclasses import dataclass, field

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.product import Product, ProductAddon


@dataclass
class CatalogEntry:
    """
    What the cart/order engine needs to know about a product.
    """

    product: Product
    addons: list[ProductAddon] = field(default_factory=list)

    @property
    def price(self):
        return self.product.price

    @property
    def stock(self) -> int | None:
        return self.product.stock_quantity

    @property
    def option_ids(self) -> list[str]:
        return list(self.product.enabled_options or [])


class ProductRepository:
    """
    Read-only catalog lookup.

    - Pure DB operations, no business logic.
    - The catalog is maintained by the admin app; nothing here writes
      except the stock decrement done inside the checkout transaction.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_many(
        self,
        session: Session,
        product_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        if not product_ids:
            return {}
        stmt = select(Product).where(Product.id.in_(set(product_ids)))
        return {p.id: p for p in session.exec(stmt).all()}

    def list_active_addons(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductAddon]:
        stmt = (
            select(ProductAddon)
            .where(ProductAddon.product_id == product_id)
            .where(ProductAddon.is_active == True)  # noqa: E712
            .order_by(ProductAddon.display_order)
        )
        return session.exec(stmt).all()

    def get_addon_link(
        self,
        session: Session,
        product_id: uuid.UUID,
        addon_product_id: uuid.UUID,
    ) -> ProductAddon | None:
        """Active product -> add-on offer, if the product offers it."""
        stmt = select(ProductAddon).where(
            ProductAddon.product_id == product_id,
            ProductAddon.addon_product_id == addon_product_id,
            ProductAddon.is_active == True,  # noqa: E712
        )
        return session.exec(stmt).first()

    def get_product(self, session: Session, product_id: uuid.UUID) -> CatalogEntry | None:
        product = self.get_by_id(session, product_id)
        if product is None:
            return None
        return CatalogEntry(product=product, addons=self.list_active_addons(session, product_id))

    def decrement_stock(self, session: Session, product: Product, quantity: int) -> bool:
        """
        Guarded decrement, no commit (runs inside the checkout transaction):

            UPDATE products SET stock_quantity = stock_quantity - :q
            WHERE id = :id AND stock_quantity >= :q

        Returns False when another checkout already took the units. Products
        without stock tracking are left alone.
        """
        if product.stock_quantity is None:
            return True
        stmt = (
            update(Product)
            .where(Product.id == product.id)
            .where(Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
        )
        result = session.connection().execute(stmt)
        return result.rowcount == 1
