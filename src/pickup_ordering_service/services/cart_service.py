"""Cart service and cart storage backends.

Carts belong to the client: they are addressed by an opaque cart id the
client keeps and are stored as JSON documents, the server-side equivalent of
browser local storage. They never touch the backend tables until checkout.
"""

import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from pickup_ordering_service.models.cart_models import Cart
from pickup_ordering_service.services.menu_service import MenuService

logger = logging.getLogger(__name__)

_CART_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class CartError(Exception):
    """Raised when a cart action cannot be applied."""


class CartStorageError(Exception):
    """Raised when a cart document cannot be read or written."""


class CartStorage(ABC):
    """Key/value storage of serialized carts."""

    @abstractmethod
    def load(self, cart_id: str) -> str | None:
        """Return the stored JSON document, or None if the cart is unknown."""

    @abstractmethod
    def save(self, cart_id: str, document: str) -> None:
        """Store the JSON document for a cart."""


class InMemoryCartStorage(CartStorage):
    """Process-local cart storage."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def load(self, cart_id: str) -> str | None:
        return self._documents.get(cart_id)

    def save(self, cart_id: str, document: str) -> None:
        self._documents[cart_id] = document


class JsonFileCartStorage(CartStorage):
    """Cart storage with one JSON file per cart in a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, cart_id: str) -> Path:
        return self.directory / f"{cart_id}.json"

    def load(self, cart_id: str) -> str | None:
        path = self._path(cart_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Error reading cart file {path}: {e}")
            raise CartStorageError("Your cart could not be loaded") from e

    def save(self, cart_id: str, document: str) -> None:
        path = self._path(cart_id)
        try:
            path.write_text(document, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error writing cart file {path}: {e}")
            raise CartStorageError("Your cart could not be saved") from e


def new_cart_id() -> str:
    return f"cart_{uuid.uuid4().hex}"


class CartService:
    """Service for loading, mutating and persisting carts.

    Every mutation loads the cart, applies the change and saves it back, so
    the stored document always reflects the latest state.
    """

    def __init__(self, storage: CartStorage, menu_service: MenuService) -> None:
        """Initialize the CartService.

        Args:
            storage: Backend for serialized carts
            menu_service: Menu used to look up dishes being added
        """
        self.storage = storage
        self.menu_service = menu_service

    @staticmethod
    def validate_cart_id(cart_id: str) -> str:
        """Check that a client-supplied cart id is safe to use as a storage key.

        Raises:
            CartError: If the id contains unexpected characters
        """
        if not _CART_ID_PATTERN.match(cart_id):
            raise CartError("Invalid cart id")
        return cart_id

    def get_cart(self, cart_id: str) -> Cart:
        """Load a cart.

        Unknown carts are empty. A document that cannot be parsed is logged
        and replaced by an empty cart.

        Args:
            cart_id: Client cart id

        Returns:
            The cart
        """
        document = self.storage.load(self.validate_cart_id(cart_id))
        if document is None:
            return Cart()

        try:
            return Cart(items=json.loads(document))
        except (ValueError, ValidationError) as e:
            logger.error(f"Error parsing stored cart {cart_id}: {e}")
            return Cart()

    def save_cart(self, cart_id: str, cart: Cart) -> None:
        document = json.dumps([item.model_dump(mode="json") for item in cart.items])
        self.storage.save(self.validate_cart_id(cart_id), document)

    async def add_item(self, cart_id: str, dish_id: str) -> Cart:
        """Add one portion of a dish on the menu.

        Raises:
            CartError: If the dish is unknown or not on the menu
        """
        dish = await self.menu_service.get_menu_dish(dish_id)
        if dish is None:
            raise CartError("This dish is not available")

        cart = self.get_cart(cart_id)
        cart.add(dish)
        self.save_cart(cart_id, cart)
        return cart

    def remove_item(self, cart_id: str, dish_id: str) -> Cart:
        cart = self.get_cart(cart_id)
        cart.remove(dish_id)
        self.save_cart(cart_id, cart)
        return cart

    def update_quantity(self, cart_id: str, dish_id: str, quantity: int) -> Cart:
        """Set a line's quantity; quantities below one remove the line."""
        cart = self.get_cart(cart_id)
        cart.update_quantity(dish_id, quantity)
        self.save_cart(cart_id, cart)
        return cart

    def clear(self, cart_id: str) -> Cart:
        cart = self.get_cart(cart_id)
        cart.clear()
        self.save_cart(cart_id, cart)
        logger.info(f"Cleared cart {cart_id}")
        return cart
