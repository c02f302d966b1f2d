"""Relay of realtime table changes into a dashboard session."""

import logging
from collections.abc import Callable
from typing import Any

from campus_food_ordering.clients.data_store_client import (
    ChangeHandlers,
    DataStoreClient,
    Filter,
    Subscription,
)
from campus_food_ordering.models.change_models import ChangeEvent
from campus_food_ordering.models.order_models import Order, OrderStatusEnum
from campus_food_ordering.observability.metrics import record_order_ready_notification
from campus_food_ordering.repositories.food_repositories import (
    CART_ITEMS_TABLE,
    MENU_ITEMS_TABLE,
    ORDERS_TABLE,
)
from campus_food_ordering.services.dashboard_service import DashboardService
from campus_food_ordering.state.dashboard_state import (
    DashboardState,
    MenuItemPatched,
    OrdersLoaded,
    SeverityEnum,
)

logger = logging.getLogger(__name__)

ORDER_READY_MESSAGE = "Your order is ready for pickup!"


class OrderReadyTracker:
    """Remembers the last observed status of each order.

    ``observe`` reports a transition into ``ready`` exactly once per edge:
    repeated observations of an order that is already ready report nothing.
    """

    def __init__(self) -> None:
        self.last_status: dict[str, OrderStatusEnum] = {}

    def seed(self, orders: list[Order]) -> None:
        """Record statuses from a fetch for orders not yet observed through events."""
        for order in orders:
            self.last_status.setdefault(order.id, order.status)

    def observe(self, order_id: str, status: OrderStatusEnum) -> bool:
        """Record a status from an update event.

        Returns:
            bool: True if this observation is a transition into ready
        """
        previous = self.last_status.get(order_id)
        self.last_status[order_id] = status
        return status == OrderStatusEnum.READY and previous != OrderStatusEnum.READY


class RealtimeNotifier:
    """Subscribes a session to the menu, cart and order change feeds.

    The cart and order feeds are scoped to the session's user. Menu updates
    are merged into the loaded menu in place; cart and order changes trigger
    a refetch. Every order list the session loads, whatever triggered it,
    seeds the ready tracker through a store listener.
    """

    def __init__(self, session: DashboardService, client: DataStoreClient) -> None:
        self.session = session
        self.client = client
        self.tracker = OrderReadyTracker()
        self.subscriptions: list[Subscription] = []
        self._remove_listener: Callable[[], None] | None = None

    def start(self) -> None:
        if self.subscriptions:
            return

        user_filter = Filter.eq("user_id", self.session.user_id)
        self.subscriptions = [
            self.client.subscribe(MENU_ITEMS_TABLE, ChangeHandlers(on_update=self.on_menu_update)),
            self.client.subscribe(
                CART_ITEMS_TABLE,
                ChangeHandlers(
                    on_insert=self.on_cart_change,
                    on_update=self.on_cart_change,
                    on_delete=self.on_cart_change,
                ),
                row_filter=user_filter,
            ),
            self.client.subscribe(
                ORDERS_TABLE,
                ChangeHandlers(on_insert=self.on_order_insert, on_update=self.on_order_update),
                row_filter=user_filter,
            ),
        ]
        self.tracker.seed(list(self.session.state.orders))
        self._remove_listener = self.session.store.subscribe(self.on_state_change)
        logger.info(f"Realtime feeds started for user {self.session.user_id}")

    def stop(self) -> None:
        for subscription in self.subscriptions:
            subscription.unsubscribe()
        self.subscriptions = []
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def on_state_change(self, state: DashboardState, action: Any) -> None:
        if isinstance(action, OrdersLoaded):
            self.tracker.seed(list(state.orders))

    async def on_menu_update(self, event: ChangeEvent) -> None:
        logger.debug(f"Menu item updated: {event.row().get('id')}")
        if event.record:
            self.session.store.dispatch(MenuItemPatched(event.record))

    async def on_cart_change(self, event: ChangeEvent) -> None:
        logger.debug(f"Cart {event.type.value.lower()} for user {self.session.user_id}")
        await self.session.refresh_cart()

    async def on_order_insert(self, event: ChangeEvent) -> None:
        record = event.record or {}
        status = self._status(record)
        if status is not None:
            self.tracker.observe(record["id"], status)
        await self.session.refresh_orders()

    async def on_order_update(self, event: ChangeEvent) -> None:
        # Observe before refetching; the refetch seeds the tracker
        record = event.record or {}
        status = self._status(record)
        became_ready = status is not None and self.tracker.observe(record["id"], status)

        await self.session.refresh_orders()

        if became_ready:
            record_order_ready_notification()
            self.session.notify(ORDER_READY_MESSAGE, SeverityEnum.SUCCESS)

    @staticmethod
    def _status(record: dict[str, Any]) -> OrderStatusEnum | None:
        """Order status carried by a change record, or None if absent or unknown."""
        if "id" not in record or "status" not in record:
            return None
        try:
            return OrderStatusEnum(record["status"])
        except ValueError:
            logger.warning(f"Ignoring unknown status {record['status']!r} for order {record['id']}")
            return None
