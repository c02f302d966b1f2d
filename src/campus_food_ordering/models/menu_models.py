"""Menu and cart data models.

These models mirror the ``menu_items`` and ``cart_items`` tables of the
backing data store. Rows come back from the PostgREST API as plain dicts and
are validated into these models by the repositories.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

LIMITED_STOCK_THRESHOLD = 5
DEFAULT_RATING = Decimal("4.0")


class MenuItem(BaseModel):
    """Menu item model."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the menu item")
    name: str = Field(..., description="Item name")
    description: str = Field(default="", description="Item description")
    price: Decimal = Field(..., description="Item price", ge=0)
    category: str = Field(default="", description="Menu category")
    quantity_available: int = Field(default=0, description="Units left in stock", ge=0)
    image_url: str | None = Field(None, description="URL to item image")
    serves: str | None = Field(None, description="Serving size")
    rating: Decimal | None = Field(None, description="Average rating")
    canteen_name: str | None = Field(None, description="Canteen selling the item")

    @field_validator("description", "category", mode="before")
    @classmethod
    def coerce_null_text(cls, v: str | None) -> str:
        """Treat null text columns as empty strings."""
        return v or ""

    @property
    def display_rating(self) -> Decimal:
        return self.rating if self.rating is not None else DEFAULT_RATING

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity_available <= 0

    @property
    def is_limited_stock(self) -> bool:
        return self.quantity_available <= LIMITED_STOCK_THRESHOLD

    def merge(self, patch: dict[str, Any]) -> "MenuItem":
        """Return a copy with the known fields of ``patch`` applied.

        Args:
            patch: Partial or full row as delivered by a change event

        Returns:
            MenuItem: Updated copy (the original is left untouched)
        """
        known = {key: value for key, value in patch.items() if key in type(self).model_fields}
        return type(self).model_validate({**self.model_dump(), **known})


class CartLine(BaseModel):
    """A pending selection: one menu item and a quantity for one user."""

    id: str = Field(..., description="Unique identifier for the cart line")
    user_id: str = Field(..., description="Owning user")
    menu_item_id: str = Field(..., description="Referenced menu item")
    quantity: int = Field(..., description="Number of units", gt=0)
    menu_item: MenuItem = Field(..., description="Live snapshot of the menu item")

    @property
    def line_total(self) -> Decimal:
        return self.menu_item.price * self.quantity
