"""Menu data models.

These models represent dish rows from the backend ``dishes`` table and the
payloads staff submit from the menu management form.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class DishCategory(str, Enum):
    """Enumeration of menu categories."""

    BIRYANI = "biryani"
    CURRY = "curry"
    KEBAB = "kebab"
    BREAD = "bread"
    DESSERT = "dessert"
    DRINKS = "drinks"

    @property
    def display_name(self) -> str:
        """Human-readable category name shown on the menu tabs."""
        return _CATEGORY_NAMES[self]


_CATEGORY_NAMES = {
    DishCategory.BIRYANI: "Biryani",
    DishCategory.CURRY: "Curry",
    DishCategory.KEBAB: "Kebabs",
    DishCategory.BREAD: "Bread",
    DishCategory.DESSERT: "Desserts",
    DishCategory.DRINKS: "Drinks",
}


def category_display_name(category: str) -> str:
    """Menu tab name of a category, or the raw value for categories added outside this service."""
    try:
        return DishCategory(category).display_name
    except ValueError:
        return category


def to_decimal(value: Any) -> Any:
    """Convert JSON floats from numeric columns to Decimal via str to keep cents exact."""
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class Dish(BaseModel):
    """Dish model."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the dish")
    name: str = Field(..., description="Dish name")
    description: str | None = Field(None, description="Dish description")
    price: Decimal = Field(..., description="Dish price", ge=0)
    # Unknown category ids from rows written elsewhere are kept as-is
    category: str = Field(..., description="Menu category id")
    image_url: str | None = Field(None, description="URL to dish image")
    active: bool = Field(default=True, description="Whether the dish is on the menu")
    created_at: datetime | None = Field(None, description="Row creation timestamp")

    @field_validator("price", mode="before")
    @classmethod
    def normalize_price(cls, v: Any) -> Any:
        """Normalize float prices from the backend."""
        return to_decimal(v)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return v.value if isinstance(v, DishCategory) else v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def category_name(self) -> str:
        return category_display_name(self.category)

    def matches(self, search_term: str) -> bool:
        """Case-insensitive match against name and description.

        Args:
            search_term: Text typed into the menu search box

        Returns:
            True if the term appears in the name or description
        """
        term = search_term.strip().lower()
        if not term:
            return True
        return term in self.name.lower() or term in (self.description or "").lower()


class DishCreate(BaseModel):
    """Payload for adding a dish to the menu."""

    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    category: DishCategory = DishCategory.BIRYANI
    image_url: str = ""

    def to_row(self) -> dict[str, Any]:
        """Convert to a ``dishes`` insert row. New dishes start active."""
        row = self.model_dump(mode="json")
        row["active"] = True
        return row


class DishUpdate(BaseModel):
    """Payload for editing a dish. Only provided fields are written."""

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    price: Decimal | None = Field(None, ge=0)
    category: DishCategory | None = None
    image_url: str | None = None

    def to_row(self) -> dict[str, Any]:
        """Convert to a partial ``dishes`` update row."""
        return self.model_dump(mode="json", exclude_unset=True)
