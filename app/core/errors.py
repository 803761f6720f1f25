# app/core/errors.py
"""
Domain errors raised by the cart / discount / order services.

Every error is an HTTPException so routers can let it propagate untouched.
The response body is always:

    {"detail": {"code": "<MACHINE_CODE>", "message": "<human text>", ...extra}}
"""
from typing import Any

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder


class DomainError(HTTPException):
    code: str = "ERROR"
    status_code_default: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        **extra: Any,
    ):
        self.code = code or self.code
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail=jsonable_encoder({"code": self.code, "message": message, **extra}),
        )


class Unauthenticated(DomainError):
    code = "UNAUTHENTICATED"
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(DomainError):
    code = "FORBIDDEN"
    status_code_default = status.HTTP_403_FORBIDDEN


class NotFound(DomainError):
    code = "NOT_FOUND"
    status_code_default = status.HTTP_404_NOT_FOUND


class CartConflict(DomainError):
    """
    The product is already in the cart with different options.

    Not a fault: the client must ask the customer to either replace the
    existing line or add the selection as a separate line.
    """

    code = "CART_CONFLICT"
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, existing: dict[str, Any], proposed: dict[str, Any]):
        self.existing = existing
        self.proposed = proposed
        super().__init__(
            "Product is already in the cart with different options",
            existing=existing,
            proposed=proposed,
        )


class DiscountRejected(DomainError):
    """
    Discount code failed validation. `code` is one of the rejection reasons
    (INVALID_CODE, EXPIRED, NOT_YET_ACTIVE, USAGE_LIMIT_REACHED, ALREADY_USED,
    BELOW_MINIMUM).
    """

    def __init__(self, reason: str, message: str, **extra: Any):
        self.reason = reason
        super().__init__(message, code=reason, **extra)


class DiscountNoLongerValid(DomainError):
    code = "DISCOUNT_NO_LONGER_VALID"
    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message, reason=reason)


class OrderCompileFailed(DomainError):
    code = "ORDER_COMPILE_FAILED"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(
            "Order could not be placed; your cart was left unchanged",
            cause=f"{type(cause).__name__}: {cause}",
        )
