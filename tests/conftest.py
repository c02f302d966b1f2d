"""Shared pytest fixtures and configuration for all tests."""

import itertools
import os
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

# Keeps main.py from building the real application at import time
os.environ["ENVIRONMENT"] = "test"

from campus_food_ordering.clients.data_store_client import (  # noqa: E402
    DataStoreClient,
    Filter,
    Ordering,
)
from campus_food_ordering.models.menu_models import CartLine, MenuItem  # noqa: E402


class InMemoryDataStore(DataStoreClient):
    """DataStoreClient keeping tables in memory, with per-operation failure injection.

    Understands eq/gt/in filters, ordering, and the ``menu_item:menu_items(*)``
    embed used by the repositories. Operations listed in ``fail`` as
    ``(operation, table)`` pairs return the client's failure value.
    """

    def __init__(self) -> None:
        super().__init__(base_url="https://store.test", api_key="test-key")
        self.tables: dict[str, list[dict[str, Any]]] = {
            "menu_items": [],
            "cart_items": [],
            "orders": [],
            "order_items": [],
        }
        self.fail: set[tuple[str, str]] = set()
        self.writes: list[tuple[str, str]] = []
        self._ids = itertools.count(1)

    @staticmethod
    def _matches(row: dict[str, Any], filters: list[Filter]) -> bool:
        for f in filters:
            value = row.get(f.column)
            if f.operator == "eq" and str(value) != str(f.value):
                return False
            if f.operator == "gt" and not value > f.value:
                return False
            if f.operator == "in" and value not in f.value:
                return False
        return True

    def _embed(self, row: dict[str, Any]) -> dict[str, Any]:
        menu_item = next(
            (m for m in self.tables["menu_items"] if m["id"] == row.get("menu_item_id")), None
        )
        return {**row, "menu_item": dict(menu_item) if menu_item else None}

    async def select(
        self,
        table: str,
        filters: list[Filter] | None = None,
        ordering: list[Ordering] | None = None,
        columns: str = "*",
    ) -> list[dict[str, Any]] | None:
        if ("select", table) in self.fail:
            return None
        rows = [dict(r) for r in self.tables[table] if self._matches(r, filters or [])]
        for order in reversed(ordering or []):
            rows.sort(key=lambda r: r[order.column], reverse=not order.ascending)
        if "menu_item:menu_items" in columns:
            rows = [self._embed(r) for r in rows]
        return rows

    async def insert(
        self, table: str, rows: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]] | None:
        self.writes.append(("insert", table))
        if ("insert", table) in self.fail:
            return None
        batch = rows if isinstance(rows, list) else [rows]
        stored = []
        for row in batch:
            new_row = {"id": f"{table}_{next(self._ids)}", **row}
            if table == "orders":
                new_row.setdefault("created_at", datetime.now(UTC).isoformat())
            self.tables[table].append(new_row)
            stored.append(dict(new_row))
        return stored

    async def update(self, table: str, filters: list[Filter], patch: dict[str, Any]) -> bool:
        self.writes.append(("update", table))
        if ("update", table) in self.fail:
            return False
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(patch)
        return True

    async def delete(self, table: str, filters: list[Filter]) -> bool:
        self.writes.append(("delete", table))
        if ("delete", table) in self.fail:
            return False
        self.tables[table] = [r for r in self.tables[table] if not self._matches(r, filters)]
        return True


@pytest.fixture
def user_id() -> str:
    """Fixture providing a standard test user ID."""
    return "user_123"


@pytest.fixture
def memory_store() -> InMemoryDataStore:
    """Fixture providing an empty in-memory data store."""
    return InMemoryDataStore()


@pytest.fixture
def menu_item_rows() -> list[dict[str, Any]]:
    """Fixture providing sample menu item rows as returned by the data store."""
    return [
        {
            "id": "item_thali",
            "name": "Veg Thali",
            "description": "Rice, dal, two sabzis and roti",
            "price": "120",
            "category": "Meals",
            "quantity_available": 10,
            "image_url": "https://example.com/thali.jpg",
            "serves": "1",
            "rating": "4.5",
            "canteen_name": "Main Canteen",
        },
        {
            "id": "item_tea",
            "name": "Tea",
            "description": "Masala chai",
            "price": "20",
            "category": "Beverages",
            "quantity_available": 50,
            "image_url": None,
            "serves": "1",
            "rating": None,
            "canteen_name": "Main Canteen",
        },
    ]


@pytest.fixture
def veg_thali() -> MenuItem:
    """Fixture providing the Veg Thali menu item."""
    return MenuItem(
        id="item_thali",
        name="Veg Thali",
        description="Rice, dal, two sabzis and roti",
        price=Decimal("120"),
        category="Meals",
        quantity_available=10,
    )


@pytest.fixture
def tea() -> MenuItem:
    """Fixture providing the Tea menu item."""
    return MenuItem(
        id="item_tea",
        name="Tea",
        description="Masala chai",
        price=Decimal("20"),
        category="Beverages",
        quantity_available=50,
    )


@pytest.fixture
def sample_cart(user_id: str, veg_thali: MenuItem, tea: MenuItem) -> list[CartLine]:
    """Fixture providing a cart of two Veg Thalis and one Tea."""
    return [
        CartLine(
            id="cart_1", user_id=user_id, menu_item_id=veg_thali.id, quantity=2, menu_item=veg_thali
        ),
        CartLine(id="cart_2", user_id=user_id, menu_item_id=tea.id, quantity=1, menu_item=tea),
    ]
