# app/services/discount_service.py
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.errors import DiscountRejected, DomainError, NotFound
from app.models.discount import DiscountCode, DiscountCodeUsage
from app.repositories.discount_repo import DiscountRepository
from app.schemas.discount import (
    AppliedDiscountRead,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountValidateRequest,
)
from app.services.cart_service import CartService
from app.services.discount_validator import (
    AppliedDiscount,
    DiscountRejection,
    normalize_code,
    validate_discount,
)

logger = logging.getLogger(__name__)


class DiscountService:
    """
    Discount codes: checkout preview, usage history, admin management.

    Rejections are expected customer-facing outcomes; they are logged at
    INFO and returned as 400 with the rejection reason as `code`.
    """

    def __init__(self, repo: DiscountRepository, cart_service: CartService):
        self.repo = repo
        self.cart_service = cart_service

    # -------- Evaluation --------

    def evaluate(
        self,
        session: Session,
        user_id: uuid.UUID,
        raw_code: str,
        subtotal: Decimal,
        for_update: bool = False,
        now: datetime | None = None,
    ) -> tuple[DiscountCode | None, AppliedDiscount | DiscountRejection]:
        """
        Look the code up (trimmed, case-insensitive) and run the validator.

        for_update=True row-locks the code until the caller commits; checkout
        uses it so the usage-limit check and the increment see the same row.
        """
        record = self.repo.get_by_code(session, normalize_code(raw_code), for_update=for_update)
        already_used = False
        if record is not None and record.once_per_user:
            already_used = self.repo.has_user_used(session, record.id, user_id)
        return record, validate_discount(record, subtotal, now=now, already_used=already_used)

    def validate(
        self,
        session: Session,
        user_id: uuid.UUID,
        raw_code: str,
        subtotal: Decimal,
        now: datetime | None = None,
    ) -> AppliedDiscount:
        _, result = self.evaluate(session, user_id, raw_code, subtotal, now=now)
        if isinstance(result, DiscountRejection):
            logger.info("Discount code %r rejected: %s", raw_code, result.reason)
            raise DiscountRejected(result.reason, result.message, **result.extra)
        return result

    def preview(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: DiscountValidateRequest,
    ) -> AppliedDiscountRead:
        subtotal = payload.cart_subtotal
        if subtotal is None:
            subtotal = self.cart_service.get_cart_summary(session, user_id).subtotal

        applied = self.validate(session, user_id, payload.code, subtotal)
        return AppliedDiscountRead(
            code=applied.code,
            discount_type=applied.discount_type,
            value=applied.value,
            discount_amount=applied.discount_amount,
        )

    # -------- Usage ledger --------

    def list_my_usages(self, session: Session, user_id: uuid.UUID) -> list[DiscountCodeUsage]:
        return self.repo.list_usages_for_user(session, user_id)

    # -------- Admin operations --------

    def list_codes(self, session: Session, skip: int = 0, limit: int = 50) -> list[DiscountCode]:
        return self.repo.list_all(session, skip, limit)

    def get_code(self, session: Session, code_id: uuid.UUID) -> DiscountCode:
        record = self.repo.get_by_id(session, code_id)
        if record is None:
            raise NotFound("Discount code not found")
        return record

    def create_code(self, session: Session, payload: DiscountCodeCreate) -> DiscountCode:
        if self.repo.get_by_code(session, payload.code) is not None:
            raise DomainError("Discount code already exists", code="DUPLICATE_CODE")

        record = DiscountCode(**payload.model_dump())
        try:
            return self.repo.create(session, record)
        except IntegrityError:
            session.rollback()
            raise DomainError("Discount code already exists", code="DUPLICATE_CODE")

    def update_code(
        self,
        session: Session,
        code_id: uuid.UUID,
        payload: DiscountCodeUpdate,
    ) -> DiscountCode:
        record = self.get_code(session, code_id)
        data = payload.model_dump(exclude_unset=True)

        if "code" in data and data["code"] != record.code:
            if self.repo.get_by_code(session, data["code"]) is not None:
                raise DomainError("Discount code already exists", code="DUPLICATE_CODE")

        discount_type = data.get("discount_type", record.discount_type)
        discount_value = data.get("discount_value", record.discount_value)
        if discount_type == "percentage" and discount_value is not None and discount_value > 100:
            raise DomainError(
                "percentage discount_value must be between 0 and 100",
                code="INVALID_DISCOUNT",
            )

        max_uses = data.get("max_uses")
        if max_uses is not None and max_uses < record.use_count:
            raise DomainError(
                f"max_uses cannot be below the current use_count ({record.use_count})",
                code="INVALID_DISCOUNT",
                use_count=record.use_count,
            )

        starts_at = data.get("starts_at", record.starts_at)
        expires_at = data.get("expires_at", record.expires_at)
        if starts_at and expires_at and _utc(expires_at) <= _utc(starts_at):
            raise DomainError("expires_at must be after starts_at", code="INVALID_DISCOUNT")

        for key, value in data.items():
            setattr(record, key, value)

        return self.repo.update(session, record)

    def delete_code(self, session: Session, code_id: uuid.UUID) -> None:
        record = self.get_code(session, code_id)
        if self.repo.list_usages_for_code(session, record.id):
            # Usage rows reference the code; deactivate instead of deleting
            # so order history keeps its audit trail.
            raise DomainError(
                "Discount code has been used; deactivate it instead",
                code="DISCOUNT_IN_USE",
            )
        self.repo.delete(session, record)


def _utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
