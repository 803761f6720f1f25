# app/repositories/addon_repo.py
import uuid

from sqlmodel import Session, select

from app.models.cart import CartItemAddon


class CartAddonRepository:
    """
    Data access layer for add-ons attached to cart lines.
    """

    def list_for_item(self, session: Session, cart_item_id: uuid.UUID) -> list[CartItemAddon]:
        stmt = (
            select(CartItemAddon)
            .where(CartItemAddon.cart_item_id == cart_item_id)
            .order_by(CartItemAddon.created_at)
        )
        return session.exec(stmt).all()

    def list_for_items(
        self,
        session: Session,
        cart_item_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, list[CartItemAddon]]:
        """Add-ons grouped by cart line id (every id present, maybe empty)."""
        grouped: dict[uuid.UUID, list[CartItemAddon]] = {i: [] for i in cart_item_ids}
        if not cart_item_ids:
            return grouped
        stmt = (
            select(CartItemAddon)
            .where(CartItemAddon.cart_item_id.in_(cart_item_ids))
            .order_by(CartItemAddon.created_at)
        )
        for addon in session.exec(stmt).all():
            grouped[addon.cart_item_id].append(addon)
        return grouped

    def get_by_id(self, session: Session, addon_id: uuid.UUID) -> CartItemAddon | None:
        return session.get(CartItemAddon, addon_id)

    def create(self, session: Session, addon: CartItemAddon) -> CartItemAddon:
        session.add(addon)
        session.commit()
        session.refresh(addon)
        return addon

    def update(self, session: Session, addon: CartItemAddon) -> CartItemAddon:
        session.add(addon)
        session.commit()
        session.refresh(addon)
        return addon

    def delete(self, session: Session, addon: CartItemAddon) -> None:
        session.delete(addon)
        session.commit()

    def clear_for_item(self, session: Session, cart_item_id: uuid.UUID) -> int:
        rows = self.list_for_item(session, cart_item_id)
        for row in rows:
            session.delete(row)
        session.commit()
        return len(rows)
