"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

# Keep main.py from building the real application during collection
os.environ.setdefault("ENVIRONMENT", "test")

from pickup_ordering_service.models.menu_models import Dish, DishCategory  # noqa: E402
from pickup_ordering_service.models.order_models import Order  # noqa: E402
from pickup_ordering_service.models.user_models import User  # noqa: E402


@pytest.fixture
def biryani() -> Dish:
    """Fixture providing an active biryani dish."""
    return Dish(
        id="dish_biryani",
        name="Chicken Biryani",
        description="Fragrant basmati rice layered with spiced chicken",
        price=Decimal("14.99"),
        category=DishCategory.BIRYANI,
        image_url="https://example.com/biryani.jpg",
        active=True,
    )


@pytest.fixture
def naan() -> Dish:
    """Fixture providing an active bread dish."""
    return Dish(
        id="dish_naan",
        name="Garlic Naan",
        description="Tandoor-baked flatbread with garlic butter",
        price=Decimal("2.99"),
        category=DishCategory.BREAD,
        active=True,
    )


@pytest.fixture
def inactive_kebab() -> Dish:
    """Fixture providing a dish that has been taken off the menu."""
    return Dish(
        id="dish_kebab",
        name="Seekh Kebab",
        description="Minced lamb skewers",
        price=Decimal("11.50"),
        category=DishCategory.KEBAB,
        active=False,
    )


@pytest.fixture
def customer() -> User:
    """Fixture providing a signed-in customer."""
    return User(id="user_123", email="asha@example.com", name="Asha", phone="555-0100")


@pytest.fixture
def staff_user() -> User:
    """Fixture providing a signed-in staff member."""
    return User(id="staff_1", email="kitchen@example.com", name="Kitchen", is_staff=True)


@pytest.fixture
def order_row() -> dict[str, Any]:
    """Fixture providing an ``orders`` row with embedded items and owner."""
    return {
        "id": "3f2a9c1e-7b44-4d0e-9a51-2c8e6f0b1d77",
        "user_id": "user_123",
        "total": 20.97,
        "status": "pending",
        "pickup_time": "2025-05-14T18:30:00+00:00",
        "notes": "Extra raita",
        "qr_code": "order-k3j9x2ab",
        "created_at": "2025-05-14T17:55:12+00:00",
        "order_items": [
            {
                "order_id": "3f2a9c1e-7b44-4d0e-9a51-2c8e6f0b1d77",
                "dish_id": "dish_biryani",
                "quantity": 1,
                "price": 14.99,
            },
            {
                "order_id": "3f2a9c1e-7b44-4d0e-9a51-2c8e6f0b1d77",
                "dish_id": "dish_naan",
                "quantity": 2,
                "price": 2.99,
            },
        ],
        "user": {"name": "Asha", "email": "asha@example.com"},
    }


def make_order(
    order_id: str,
    status: str = "pending",
    total: str = "10.00",
    user_id: str | None = "user_123",
    created_at: datetime | None = None,
) -> Order:
    return Order(
        id=order_id,
        user_id=user_id,
        total=Decimal(total),
        status=status,
        pickup_time=datetime(2025, 5, 14, 18, 30, tzinfo=UTC),
        qr_code=f"order-{order_id[:8]}",
        created_at=created_at or datetime(2025, 5, 14, 17, 0, tzinfo=UTC),
    )


@pytest.fixture
def order_factory() -> Any:
    """Fixture providing a factory that builds orders with sensible defaults."""
    return make_order
