# tests/conftest.py
import os

# Settings are read at import time; give them test values first.
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ORDER_EMAIL_ENABLED", "false")

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import SQLModel, Session, create_engine

from app.core.config import get_settings
from app.database import get_session
from app.main import app
from app.models.discount import DiscountCode
from app.models.product import Product, ProductAddon
from app.models.user import User
from app.repositories.addon_repo import CartAddonRepository
from app.repositories.cart_repo import CartRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.services.addon_service import AddonService
from app.services.cart_service import CartService
from app.services.discount_service import DiscountService
from app.services.order_service import OrderService


@pytest.fixture
def engine(tmp_path):
    # File-backed so two sessions really see each other's commits.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---- services wired like the routers do ----


@pytest.fixture
def cart_service():
    return CartService(CartRepository(), ProductRepository(), CartAddonRepository())


@pytest.fixture
def addon_service(cart_service):
    return AddonService(CartAddonRepository(), ProductRepository(), cart_service)


@pytest.fixture
def discount_service(cart_service):
    return DiscountService(DiscountRepository(), cart_service)


@pytest.fixture
def order_service(cart_service, discount_service):
    return OrderService(
        OrderRepository(),
        CartRepository(),
        CartAddonRepository(),
        ProductRepository(),
        DiscountRepository(),
        cart_service,
        discount_service,
    )


# ---- data factories ----


def make_user(session: Session, role: str = "user", email: str | None = None) -> User:
    user_id = uuid.uuid4()
    user = User(id=user_id, email=email or f"{user_id.hex[:8]}@example.com", role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_product(session: Session, **overrides) -> Product:
    suffix = uuid.uuid4().hex[:8]
    data = {
        "name": f"Kundan Choker {suffix}",
        "slug": f"kundan-choker-{suffix}",
        "price": Decimal("1000.00"),
        "stock_quantity": 10,
        "hero_image_url": f"https://cdn.example.com/{suffix}.jpg",
        "enabled_options": ["size"],
    }
    data.update(overrides)
    product = Product(**data)
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def offer_addon(
    session: Session,
    product: Product,
    addon_product: Product,
    price_override: Decimal | None = None,
) -> ProductAddon:
    link = ProductAddon(
        product_id=product.id,
        addon_product_id=addon_product.id,
        price_override=price_override,
    )
    session.add(link)
    session.commit()
    session.refresh(link)
    return link


def make_code(session: Session, **overrides) -> DiscountCode:
    data = {
        "code": "SAVE10",
        "discount_type": "percentage",
        "discount_value": Decimal("10"),
    }
    data.update(overrides)
    code = DiscountCode(**data)
    session.add(code)
    session.commit()
    session.refresh(code)
    return code


def auth_headers(user_id: uuid.UUID, email: str) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode(
        {
            "sub": str(user_id),
            "email": email,
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        settings.SUPABASE_JWT_SECRET,
        algorithm=settings.SUPABASE_JWT_ALG,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer(session):
    return make_user(session)


@pytest.fixture
def admin(session):
    return make_user(session, role="admin")


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer.id, customer.email)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin.id, admin.email)


SHIPPING_ADDRESS = {
    "first_name": "Ananya",
    "last_name": "Rao",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pin_code": "560001",
    "phone": "9876543210",
}
