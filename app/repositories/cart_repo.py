# app/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session, select

from app.models.cart import CartItem, CartItemAddon


class CartRepository:
    """
    Data access layer for cart lines.

    Deleting a line always deletes its add-ons in the same transaction,
    even on backends without ON DELETE CASCADE.
    """

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at)
        )
        return session.exec(stmt).all()

    def list_for_product(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        for_update: bool = False,
    ) -> list[CartItem]:
        """
        All lines of one product in a user's cart, oldest first.

        for_update=True row-locks them until the caller commits.
        """
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
            .order_by(CartItem.created_at)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, item_id: uuid.UUID) -> CartItem | None:
        return session.get(CartItem, item_id)

    # CRUD
    def create(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def update(self, session: Session, item: CartItem) -> CartItem:
        item.updated_at = datetime.now(timezone.utc)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: CartItem) -> None:
        self._delete_addons(session, [item.id])
        session.delete(item)
        session.commit()

    def fold_into(self, session: Session, source: CartItem, target: CartItem) -> CartItem:
        """
        Move source's add-ons onto target, delete source and save target,
        all in one commit.
        """
        stmt = select(CartItemAddon).where(CartItemAddon.cart_item_id == source.id)
        for addon in session.exec(stmt).all():
            addon.cart_item_id = target.id
            session.add(addon)
        session.flush()
        session.delete(source)
        return self.update(session, target)

    def clear_user_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        commit: bool = True,
    ) -> None:
        """
        Delete every line (and add-on) of the user.

        commit=False lets checkout clear the cart inside its own transaction.
        """
        rows = self.list_for_user(session, user_id)
        self._delete_addons(session, [row.id for row in rows])
        for row in rows:
            session.delete(row)
        if commit:
            session.commit()
        else:
            session.flush()

    def _delete_addons(self, session: Session, item_ids: list[uuid.UUID]) -> None:
        if not item_ids:
            return
        stmt = select(CartItemAddon).where(CartItemAddon.cart_item_id.in_(item_ids))
        for addon in session.exec(stmt).all():
            session.delete(addon)
        session.flush()
