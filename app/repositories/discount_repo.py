# app/repositories/discount_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlmodel import Session, select

from app.models.discount import DiscountCode, DiscountCodeUsage


class DiscountRepository:
    """
    Data access layer for discount_codes and discount_code_usages.

    NOTE:
      - increment_use_count / add_usage do not commit; they run inside the
        checkout transaction.
    """

    # ---- Codes ----

    def get_by_id(self, session: Session, code_id: uuid.UUID) -> DiscountCode | None:
        return session.get(DiscountCode, code_id)

    def get_by_code(
        self,
        session: Session,
        code: str,
        for_update: bool = False,
    ) -> DiscountCode | None:
        """`code` must already be normalised (trimmed, upper case)."""
        stmt = select(DiscountCode).where(DiscountCode.code == code)
        if for_update:
            stmt = stmt.with_for_update()
        return session.exec(stmt).first()

    def list_all(self, session: Session, skip: int = 0, limit: int = 50) -> list[DiscountCode]:
        stmt = (
            select(DiscountCode)
            .order_by(DiscountCode.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create(self, session: Session, code: DiscountCode) -> DiscountCode:
        session.add(code)
        session.commit()
        session.refresh(code)
        return code

    def update(self, session: Session, code: DiscountCode) -> DiscountCode:
        code.updated_at = datetime.now(timezone.utc)
        session.add(code)
        session.commit()
        session.refresh(code)
        return code

    def delete(self, session: Session, code: DiscountCode) -> None:
        session.delete(code)
        session.commit()

    def increment_use_count(self, session: Session, code_id: uuid.UUID) -> bool:
        """
        Atomic increment-with-guard:

            UPDATE discount_codes SET use_count = use_count + 1
            WHERE id = :id AND (max_uses IS NULL OR use_count < max_uses)

        Returns False when the ceiling was already reached (0 rows), which
        is how two racing checkouts on the last slot are told apart.
        """
        stmt = (
            update(DiscountCode)
            .where(DiscountCode.id == code_id)
            .where(
                or_(
                    DiscountCode.max_uses.is_(None),
                    DiscountCode.use_count < DiscountCode.max_uses,
                )
            )
            .values(
                use_count=DiscountCode.use_count + 1,
                updated_at=datetime.now(timezone.utc),
            )
        )
        result = session.connection().execute(stmt)
        return result.rowcount == 1

    # ---- Usages ----

    def has_user_used(
        self,
        session: Session,
        code_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> bool:
        stmt = select(DiscountCodeUsage.id).where(
            DiscountCodeUsage.discount_code_id == code_id,
            DiscountCodeUsage.user_id == user_id,
        )
        return session.exec(stmt).first() is not None

    def add_usage(self, session: Session, usage: DiscountCodeUsage) -> DiscountCodeUsage:
        session.add(usage)
        session.flush()
        return usage

    def list_usages_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> list[DiscountCodeUsage]:
        stmt = (
            select(DiscountCodeUsage)
            .where(DiscountCodeUsage.user_id == user_id)
            .order_by(DiscountCodeUsage.used_at.desc())
        )
        return session.exec(stmt).all()

    def list_usages_for_code(
        self,
        session: Session,
        code_id: uuid.UUID,
    ) -> list[DiscountCodeUsage]:
        stmt = select(DiscountCodeUsage).where(DiscountCodeUsage.discount_code_id == code_id)
        return session.exec(stmt).all()
