"""Repositories for menu items, cart lines and orders.

These repositories turn the data store's generic table operations into typed
models. Following the data store client, expected failures are reported with
simple return values (None/False) rather than exceptions.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import ValidationError

from campus_food_ordering.clients.data_store_client import DataStoreClient, Filter, Ordering
from campus_food_ordering.models.menu_models import CartLine, MenuItem
from campus_food_ordering.models.order_models import (
    Order,
    OrderStatusEnum,
    PaymentStatusEnum,
)

logger = logging.getLogger(__name__)

MENU_ITEMS_TABLE = "menu_items"
CART_ITEMS_TABLE = "cart_items"
ORDERS_TABLE = "orders"
ORDER_ITEMS_TABLE = "order_items"

WITH_MENU_ITEM = "*,menu_item:menu_items(*)"


def _money(value: Decimal) -> str:
    # Decimal is not JSON serializable; PostgREST accepts numeric strings
    return str(value)


class MenuRepository:
    """Repository for the read-mostly ``menu_items`` table."""

    def __init__(self, client: DataStoreClient) -> None:
        self.client = client

    async def list_available(self) -> list[MenuItem] | None:
        """List menu items that still have stock, ordered by name.

        Returns:
            list: MenuItem objects, or None if the fetch failed
        """
        rows = await self.client.select(
            MENU_ITEMS_TABLE,
            filters=[Filter.gt("quantity_available", 0)],
            ordering=[Ordering("name")],
        )
        if rows is None:
            return None

        try:
            return [MenuItem.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.error(f"Malformed menu item row: {e}")
            return None

    async def set_available_quantity(self, menu_item_id: str, quantity: int) -> bool:
        """Overwrite the stock counter of one menu item.

        Args:
            menu_item_id: Menu item identifier
            quantity: New available quantity

        Returns:
            bool: True if the update succeeded, False otherwise
        """
        return await self.client.update(
            MENU_ITEMS_TABLE,
            filters=[Filter.eq("id", menu_item_id)],
            patch={"quantity_available": quantity},
        )


class AddToCartOutcome(str, Enum):
    """Result of an add-to-cart request."""

    ADDED = "added"
    INCREMENTED = "incremented"
    IGNORED = "ignored"
    FAILED = "failed"


class CartRepository:
    """Repository for a user's ``cart_items``.

    Keeps an item-scoped in-progress marker so that a second add for the same
    (user, menu item) pair while the first is outstanding is ignored.
    """

    def __init__(self, client: DataStoreClient) -> None:
        self.client = client
        self._adding: set[tuple[str, str]] = set()

    def is_adding(self, user_id: str, menu_item_id: str) -> bool:
        return (user_id, menu_item_id) in self._adding

    @contextmanager
    def _adding_marker(self, user_id: str, menu_item_id: str) -> Iterator[None]:
        key = (user_id, menu_item_id)
        self._adding.add(key)
        try:
            yield
        finally:
            self._adding.discard(key)

    async def list_for_user(self, user_id: str) -> list[CartLine] | None:
        """List the user's cart lines, each joined with the live menu item.

        Args:
            user_id: Owning user identifier

        Returns:
            list: CartLine objects, or None if the fetch failed
        """
        rows = await self.client.select(
            CART_ITEMS_TABLE,
            filters=[Filter.eq("user_id", user_id)],
            columns=WITH_MENU_ITEM,
        )
        if rows is None:
            return None

        try:
            return [CartLine.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.error(f"Malformed cart row for user {user_id}: {e}")
            return None

    async def add_or_increment(self, user_id: str, menu_item: MenuItem) -> AddToCartOutcome:
        """Add one unit of a menu item to the user's cart.

        Increments the existing line for (user, item) if there is one,
        otherwise inserts a new line with quantity 1.

        Args:
            user_id: Owning user identifier
            menu_item: The menu item to add

        Returns:
            AddToCartOutcome describing what happened
        """
        if self.is_adding(user_id, menu_item.id):
            logger.debug(f"Add to cart already in progress for {user_id}/{menu_item.id}")
            return AddToCartOutcome.IGNORED

        with self._adding_marker(user_id, menu_item.id):
            rows = await self.client.select(
                CART_ITEMS_TABLE,
                filters=[Filter.eq("user_id", user_id), Filter.eq("menu_item_id", menu_item.id)],
            )
            if rows is None:
                return AddToCartOutcome.FAILED

            if rows:
                existing = rows[0]
                updated = await self.client.update(
                    CART_ITEMS_TABLE,
                    filters=[Filter.eq("id", existing["id"])],
                    patch={"quantity": int(existing["quantity"]) + 1},
                )
                return AddToCartOutcome.INCREMENTED if updated else AddToCartOutcome.FAILED

            inserted = await self.client.insert(
                CART_ITEMS_TABLE,
                {"user_id": user_id, "menu_item_id": menu_item.id, "quantity": 1},
            )
            return AddToCartOutcome.ADDED if inserted is not None else AddToCartOutcome.FAILED

    async def set_quantity(self, user_id: str, cart_line_id: str, quantity: int) -> bool:
        """Set a cart line's quantity; zero or less removes the line.

        Both writes are scoped to the owning user, so a line id belonging to
        someone else matches no row.

        Args:
            user_id: Owning user identifier
            cart_line_id: Cart line identifier
            quantity: New quantity

        Returns:
            bool: True if the write succeeded, False otherwise
        """
        owned_line = [Filter.eq("id", cart_line_id), Filter.eq("user_id", user_id)]
        if quantity <= 0:
            return await self.client.delete(CART_ITEMS_TABLE, filters=owned_line)

        return await self.client.update(
            CART_ITEMS_TABLE,
            filters=owned_line,
            patch={"quantity": quantity},
        )

    async def clear_for_user(self, user_id: str) -> bool:
        """Delete every cart line owned by the user in one request."""
        return await self.client.delete(CART_ITEMS_TABLE, filters=[Filter.eq("user_id", user_id)])


class OrderRepository:
    """Repository for ``orders`` and their ``order_items``."""

    def __init__(self, client: DataStoreClient) -> None:
        self.client = client

    async def list_for_user(self, user_id: str) -> list[Order] | None:
        """List the user's orders, most recent first, with their lines.

        Line price and quantity come from the order-time snapshot; the joined
        menu item is for display only.

        Args:
            user_id: Owning user identifier

        Returns:
            list: Order objects, or None if either fetch failed
        """
        order_rows = await self.client.select(
            ORDERS_TABLE,
            filters=[Filter.eq("user_id", user_id)],
            ordering=[Ordering("created_at", ascending=False)],
        )
        if order_rows is None:
            return None
        if not order_rows:
            return []

        order_ids = [row["id"] for row in order_rows]
        line_rows = await self.client.select(
            ORDER_ITEMS_TABLE,
            filters=[Filter.in_("order_id", order_ids)],
            columns=WITH_MENU_ITEM,
        )
        if line_rows is None:
            return None

        lines_by_order: dict[str, list[dict[str, Any]]] = {order_id: [] for order_id in order_ids}
        for line in line_rows:
            lines_by_order.setdefault(line["order_id"], []).append(line)

        try:
            return [
                Order.model_validate({**row, "order_items": lines_by_order.get(row["id"], [])})
                for row in order_rows
            ]
        except ValidationError as e:
            logger.error(f"Malformed order row for user {user_id}: {e}")
            return None

    async def create_order(self, user_id: str, total_amount: Decimal) -> Order | None:
        """Create an order header in status pending / payment pending.

        Args:
            user_id: Owning user identifier
            total_amount: Order total, fixed from this point on

        Returns:
            Order with its store-assigned identity, or None on failure
        """
        rows = await self.client.insert(
            ORDERS_TABLE,
            {
                "user_id": user_id,
                "total_amount": _money(total_amount),
                "status": OrderStatusEnum.PENDING.value,
                "payment_status": PaymentStatusEnum.PENDING.value,
            },
        )
        if not rows:
            return None

        try:
            return Order.model_validate(rows[0])
        except ValidationError as e:
            logger.error(f"Malformed order row returned on insert: {e}")
            return None

    async def create_order_lines(self, order_id: str, cart_lines: list[CartLine]) -> bool:
        """Create one order line per cart line in a single insert.

        Each line's price is taken from the cart snapshot, not looked up again.

        Args:
            order_id: The order the lines belong to
            cart_lines: Cart snapshot being checked out

        Returns:
            bool: True if all lines were created, False otherwise
        """
        rows = [
            {
                "order_id": order_id,
                "menu_item_id": line.menu_item_id,
                "quantity": line.quantity,
                "price": _money(line.menu_item.price),
            }
            for line in cart_lines
        ]
        return await self.client.insert(ORDER_ITEMS_TABLE, rows) is not None

    async def delete_order(self, order_id: str) -> bool:
        """Delete an order header (used only to undo a half-created order)."""
        return await self.client.delete(ORDERS_TABLE, filters=[Filter.eq("id", order_id)])
