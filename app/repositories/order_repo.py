# app/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session, select

from app.models.order import Order, OrderItem, OrderNumberSequence


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[Order]:
        stmt = select(Order)
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def next_order_number(self, session: Session, prefix: str) -> str:
        """
        Draw the next number from the store-side sequence table.

        Uniqueness comes from the database-assigned id, never from the
        application clock. Format: <PREFIX>-<YYMMDD>-<NNNNNN>.
        """
        row = OrderNumberSequence()
        session.add(row)
        session.flush()
        return f"{prefix}-{row.created_at:%y%m%d}-{row.id:06d}"

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        order.updated_at = datetime.now(timezone.utc)
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at)
        )
        return session.exec(stmt).all()

    def create_item(self, session: Session, item: OrderItem) -> OrderItem:
        session.add(item)
        session.flush()
        return item
