"""Cart models.

The cart is a client-owned list of selected dishes keyed by dish id. It has no
server identity until checkout turns it into order rows.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from pickup_ordering_service.models.menu_models import Dish


class CartItem(BaseModel):
    """A dish selected into the cart with its quantity."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Dish identifier")
    name: str = Field(..., description="Dish name at the time it was added")
    price: Decimal = Field(..., description="Unit price at the time it was added", ge=0)
    quantity: int = Field(default=1, description="Number of portions", ge=1)
    image_url: str | None = Field(None, description="URL to dish image")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Cart(BaseModel):
    """Typed cart store.

    All mutations keep at most one line per dish id. Totals are always derived
    from the remaining lines, never stored.
    """

    items: list[CartItem] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_price(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get(self, dish_id: str) -> CartItem | None:
        for item in self.items:
            if item.id == dish_id:
                return item
        return None

    def add(self, dish: Dish) -> CartItem:
        """Add one portion of a dish, incrementing an existing line.

        Args:
            dish: Dish to add

        Returns:
            The cart line holding the dish
        """
        existing = self.get(dish.id)
        if existing is not None:
            existing.quantity += 1
            return existing

        item = CartItem(
            id=dish.id,
            name=dish.name,
            price=dish.price,
            quantity=1,
            image_url=dish.image_url,
        )
        self.items.append(item)
        return item

    def remove(self, dish_id: str) -> None:
        self.items = [item for item in self.items if item.id != dish_id]

    def update_quantity(self, dish_id: str, quantity: int) -> None:
        """Set the quantity of a line. Quantities below one remove the line.

        Args:
            dish_id: Dish identifier of the line
            quantity: New quantity
        """
        if quantity < 1:
            self.remove(dish_id)
            return

        item = self.get(dish_id)
        if item is not None:
            item.quantity = quantity

    def clear(self) -> None:
        self.items = []


class CartSummary(BaseModel):
    """Cart as returned to the client, with derived totals."""

    cart_id: str
    items: list[CartItem]
    total_items: int
    total_price: Decimal

    @classmethod
    def from_cart(cls, cart_id: str, cart: Cart) -> "CartSummary":
        return cls(
            cart_id=cart_id,
            items=cart.items,
            total_items=cart.total_items,
            total_price=cart.total_price,
        )
