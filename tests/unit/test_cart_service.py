"""Unit tests for the cart model and CartService."""

import json
import random
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from pickup_ordering_service.models.cart_models import Cart, CartSummary
from pickup_ordering_service.models.menu_models import Dish
from pickup_ordering_service.services.cart_service import (
    CartError,
    CartService,
    CartStorageError,
    InMemoryCartStorage,
    JsonFileCartStorage,
    new_cart_id,
)
from pickup_ordering_service.services.menu_service import MenuService


@pytest.mark.unit
class TestCart:
    """Tests for cart mutations and derived totals."""

    def test_add_new_dish_creates_line(self, biryani: Dish) -> None:
        """Test that adding a dish creates a line with quantity one."""
        cart = Cart()

        item = cart.add(biryani)

        assert item.quantity == 1
        assert item.name == "Chicken Biryani"
        assert cart.total_items == 1

    def test_add_existing_dish_increments_quantity(self, biryani: Dish) -> None:
        """Test that adding the same dish twice keeps a single line."""
        cart = Cart()

        cart.add(biryani)
        cart.add(biryani)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2

    def test_totals(self, biryani: Dish, naan: Dish) -> None:
        """Test item count and price totals across lines."""
        cart = Cart()
        cart.add(biryani)
        cart.add(naan)
        cart.add(naan)

        assert cart.total_items == 3
        assert cart.total_price == Decimal("20.97")

    @pytest.mark.parametrize("seed", range(20))
    def test_totals_hold_after_every_step(
        self, biryani: Dish, naan: Dish, inactive_kebab: Dish, seed: int
    ) -> None:
        """Test that totals match the lines after each step of a random edit sequence."""
        rng = random.Random(seed)
        dishes = [biryani, naan, inactive_kebab]
        cart = Cart()

        for _ in range(30):
            dish = rng.choice(dishes)
            action = rng.choice(["add", "update", "remove"])
            if action == "add":
                cart.add(dish)
            elif action == "update":
                cart.update_quantity(dish.id, rng.randint(-1, 5))
            else:
                cart.remove(dish.id)

            assert cart.total_price == sum((item.price * item.quantity for item in cart.items), Decimal("0"))
            assert cart.total_items == sum(item.quantity for item in cart.items)
            assert all(item.quantity >= 1 for item in cart.items)
            assert len({item.id for item in cart.items}) == len(cart.items)

    def test_update_quantity(self, biryani: Dish) -> None:
        """Test setting a line quantity."""
        cart = Cart()
        cart.add(biryani)

        cart.update_quantity(biryani.id, 4)

        assert cart.items[0].quantity == 4
        assert cart.total_price == Decimal("59.96")

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_update_quantity_below_one_removes_line(self, biryani: Dish, quantity: int) -> None:
        """Test that quantities below one remove the line."""
        cart = Cart()
        cart.add(biryani)

        cart.update_quantity(biryani.id, quantity)

        assert cart.is_empty

    def test_update_quantity_unknown_dish_is_ignored(self, biryani: Dish) -> None:
        """Test that updating a dish not in the cart changes nothing."""
        cart = Cart()
        cart.add(biryani)

        cart.update_quantity("missing", 5)

        assert cart.total_items == 1

    def test_remove_and_clear(self, biryani: Dish, naan: Dish) -> None:
        """Test removing a line and clearing the cart."""
        cart = Cart()
        cart.add(biryani)
        cart.add(naan)

        cart.remove(biryani.id)
        assert [item.id for item in cart.items] == [naan.id]

        cart.clear()
        assert cart.is_empty
        assert cart.total_price == Decimal("0")

    def test_summary(self, biryani: Dish) -> None:
        """Test the cart summary returned to clients."""
        cart = Cart()
        cart.add(biryani)

        summary = CartSummary.from_cart("cart_1", cart)

        assert summary.cart_id == "cart_1"
        assert summary.total_items == 1
        assert summary.total_price == Decimal("14.99")


@pytest.mark.unit
class TestCartStorage:
    """Tests for cart storage backends."""

    def test_in_memory_round_trip(self) -> None:
        """Test storing and loading a document in memory."""
        storage = InMemoryCartStorage()

        assert storage.load("cart_1") is None
        storage.save("cart_1", "[]")
        assert storage.load("cart_1") == "[]"

    def test_json_file_storage(self, tmp_path: Path) -> None:
        """Test that carts are written as one JSON file each."""
        storage = JsonFileCartStorage(tmp_path / "carts")

        storage.save("cart_1", '[{"id": "d1"}]')

        assert (tmp_path / "carts" / "cart_1.json").read_text() == '[{"id": "d1"}]'
        assert storage.load("cart_1") == '[{"id": "d1"}]'
        assert storage.load("cart_2") is None

    def test_json_file_read_error(self, tmp_path: Path) -> None:
        """Test that an unreadable cart file raises CartStorageError."""
        storage = JsonFileCartStorage(tmp_path)
        (tmp_path / "cart_1.json").mkdir()

        with pytest.raises(CartStorageError, match="could not be loaded"):
            storage.load("cart_1")

    def test_json_file_write_error(self, tmp_path: Path) -> None:
        """Test that an unwritable cart file raises CartStorageError."""
        storage = JsonFileCartStorage(tmp_path)
        (tmp_path / "cart_1.json").mkdir()

        with pytest.raises(CartStorageError, match="could not be saved"):
            storage.save("cart_1", "[]")


@pytest.mark.unit
class TestCartService:
    """Tests for CartService."""

    @pytest.fixture
    def menu_service(self) -> MagicMock:
        """Create a mock menu service."""
        return MagicMock(spec=MenuService)

    @pytest.fixture
    def storage(self) -> InMemoryCartStorage:
        return InMemoryCartStorage()

    @pytest.fixture
    def service(self, storage: InMemoryCartStorage, menu_service: MagicMock) -> CartService:
        """Create a CartService with in-memory storage."""
        return CartService(storage=storage, menu_service=menu_service)

    def test_new_cart_id_is_valid(self) -> None:
        """Test that minted cart ids pass validation."""
        cart_id = new_cart_id()

        assert cart_id.startswith("cart_")
        assert CartService.validate_cart_id(cart_id) == cart_id

    @pytest.mark.parametrize("cart_id", ["", "../etc/passwd", "cart id", "x" * 65])
    def test_invalid_cart_ids_rejected(self, cart_id: str) -> None:
        """Test that unsafe storage keys are rejected."""
        with pytest.raises(CartError):
            CartService.validate_cart_id(cart_id)

    def test_unknown_cart_is_empty(self, service: CartService) -> None:
        """Test that a cart never saved loads as empty."""
        assert service.get_cart("cart_new").is_empty

    def test_corrupt_document_loads_empty(
        self, service: CartService, storage: InMemoryCartStorage
    ) -> None:
        """Test that an unreadable stored cart is replaced by an empty cart."""
        storage.save("cart_bad", "{not json")

        assert service.get_cart("cart_bad").is_empty

    def test_invalid_item_document_loads_empty(
        self, service: CartService, storage: InMemoryCartStorage
    ) -> None:
        """Test that stored lines failing validation give an empty cart."""
        storage.save("cart_bad", json.dumps([{"id": "d1", "quantity": 0}]))

        assert service.get_cart("cart_bad").is_empty

    @pytest.mark.asyncio
    async def test_add_item_persists(
        self, service: CartService, menu_service: MagicMock, biryani: Dish, naan: Dish
    ) -> None:
        """Test that added dishes survive a reload."""
        menu_service.get_menu_dish = AsyncMock(side_effect=[biryani, naan, naan])

        await service.add_item("cart_1", biryani.id)
        await service.add_item("cart_1", naan.id)
        await service.add_item("cart_1", naan.id)

        cart = service.get_cart("cart_1")
        assert cart.total_items == 3
        assert cart.total_price == Decimal("20.97")

    @pytest.mark.asyncio
    async def test_add_unavailable_dish_raises(
        self, service: CartService, menu_service: MagicMock
    ) -> None:
        """Test that dishes off the menu cannot be added."""
        menu_service.get_menu_dish = AsyncMock(return_value=None)

        with pytest.raises(CartError, match="This dish is not available"):
            await service.add_item("cart_1", "dish_kebab")

        assert service.get_cart("cart_1").is_empty

    @pytest.mark.asyncio
    async def test_update_remove_and_clear(
        self, service: CartService, menu_service: MagicMock, biryani: Dish, naan: Dish
    ) -> None:
        """Test line updates are saved."""
        menu_service.get_menu_dish = AsyncMock(side_effect=[biryani, naan])
        await service.add_item("cart_1", biryani.id)
        await service.add_item("cart_1", naan.id)

        service.update_quantity("cart_1", naan.id, 3)
        assert service.get_cart("cart_1").get(naan.id).quantity == 3

        service.remove_item("cart_1", biryani.id)
        assert service.get_cart("cart_1").get(biryani.id) is None

        service.clear("cart_1")
        assert service.get_cart("cart_1").is_empty

    def test_carts_are_isolated(self, service: CartService, biryani: Dish) -> None:
        """Test that two cart ids do not share lines."""
        cart = Cart()
        cart.add(biryani)
        service.save_cart("cart_a", cart)

        assert service.get_cart("cart_b").is_empty
        assert service.get_cart("cart_a").total_items == 1
