# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import Forbidden, Unauthenticated
from app.database import get_session
from app.models.user import User

settings = get_settings()

# auto_error=False => a missing Authorization header does not raise here,
# so require_auth can answer with our own UNAUTHENTICATED body.
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        Unauthenticated: if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise Unauthenticated("Invalid or expired token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a Supabase JWT.

    Flow:
      1. No Authorization header => guest => None.
      2. Decode JWT => 'sub' (auth user id), 'email', optional
         user_metadata.full_name.
      3. Load the profile row, auto-provisioning it on first sight.
    """
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise Unauthenticated("Token missing sub/email")

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise Unauthenticated("Invalid sub in token")

    user = session.get(User, sub_uuid)

    # Admins are promoted manually; every new profile starts as "user".
    if user is None:
        metadata = payload.get("user_metadata") or {}
        user = User(
            id=sub_uuid,
            email=email,
            full_name=metadata.get("full_name"),
            role="user",
        )
        session.add(user)
        session.commit()
        session.refresh(user)

    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Reject guests with 401 UNAUTHENTICATED.
    """
    if user is None:
        raise Unauthenticated()
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Admin-only routes (discount code management, order status).
    """
    if user.role != "admin":
        raise Forbidden("Admin access required")
    return user


def require_user(user: User = Depends(require_auth)) -> User:
    """
    Customer-only routes: cart, add-ons, discount preview, checkout.
    Admins get 403.
    """
    if user.role != "user":
        raise Forbidden("Customer access required")
    return user
