"""Per-session dashboard state, actions and reducers.

All changes to a session's menu, cart, orders and notifications go through
``DashboardStore.dispatch``. Actions are queued and applied one at a time in
FIFO order, each by the reducer registered for its type, so updates pushed by
realtime events and updates caused by the user never interleave inside a
reducer.
"""

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any

from campus_food_ordering.models.menu_models import CartLine, MenuItem
from campus_food_ordering.models.order_models import Order

logger = logging.getLogger(__name__)


class SeverityEnum(str, Enum):
    """Notification severity."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    """A user-facing message that stays until the caller dismisses it."""

    id: str
    message: str
    severity: SeverityEnum


@dataclass(frozen=True)
class DashboardState:
    """Immutable snapshot of one user's dashboard."""

    menu_items: tuple[MenuItem, ...] = ()
    cart_lines: tuple[CartLine, ...] = ()
    orders: tuple[Order, ...] = ()
    notifications: tuple[Notification, ...] = ()
    adding_to_cart: frozenset[str] = frozenset()
    placing_order: bool = False
    cart_open: bool = False
    loading: bool = True

    @property
    def cart_count(self) -> int:
        return sum(line.quantity for line in self.cart_lines)

    @property
    def cart_total(self) -> Decimal:
        return sum((line.line_total for line in self.cart_lines), Decimal("0"))

    @property
    def categories(self) -> list[str]:
        """'all' followed by the distinct menu categories in first-seen order."""
        seen = dict.fromkeys(item.category for item in self.menu_items)
        return ["all", *seen]

    def find_menu_item(self, menu_item_id: str) -> MenuItem | None:
        return next((item for item in self.menu_items if item.id == menu_item_id), None)

    def find_cart_line(self, cart_line_id: str) -> CartLine | None:
        return next((line for line in self.cart_lines if line.id == cart_line_id), None)

    def filter_menu(self, search: str = "", category: str = "all") -> list[MenuItem]:
        """Menu items matching a search term on name or description and a category."""
        term = search.lower()
        return [
            item
            for item in self.menu_items
            if (term in item.name.lower() or term in item.description.lower())
            and (category == "all" or item.category == category)
        ]


# Actions


@dataclass(frozen=True)
class MenuLoaded:
    items: list[MenuItem]


@dataclass(frozen=True)
class CartLoaded:
    lines: list[CartLine]


@dataclass(frozen=True)
class OrdersLoaded:
    orders: list[Order]


@dataclass(frozen=True)
class LoadingFinished:
    pass


@dataclass(frozen=True)
class MenuItemPatched:
    """Realtime update of a menu row; merged into a loaded item, never adds or removes."""

    record: dict[str, Any]


@dataclass(frozen=True)
class AddToCartStarted:
    menu_item_id: str


@dataclass(frozen=True)
class AddToCartFinished:
    menu_item_id: str


@dataclass(frozen=True)
class CheckoutStarted:
    pass


@dataclass(frozen=True)
class CheckoutFinished:
    pass


@dataclass(frozen=True)
class CartVisibilitySet:
    open: bool


@dataclass(frozen=True)
class NotificationRaised:
    notification: Notification


@dataclass(frozen=True)
class NotificationDismissed:
    notification_id: str


# Reducers


def _menu_loaded(state: DashboardState, action: MenuLoaded) -> DashboardState:
    return replace(state, menu_items=tuple(action.items))


def _cart_loaded(state: DashboardState, action: CartLoaded) -> DashboardState:
    return replace(state, cart_lines=tuple(action.lines))


def _orders_loaded(state: DashboardState, action: OrdersLoaded) -> DashboardState:
    return replace(state, orders=tuple(action.orders))


def _loading_finished(state: DashboardState, action: LoadingFinished) -> DashboardState:
    return replace(state, loading=False)


def _menu_item_patched(state: DashboardState, action: MenuItemPatched) -> DashboardState:
    item_id = action.record.get("id")
    items = tuple(item.merge(action.record) if item.id == item_id else item for item in state.menu_items)
    return replace(state, menu_items=items)


def _add_to_cart_started(state: DashboardState, action: AddToCartStarted) -> DashboardState:
    return replace(state, adding_to_cart=state.adding_to_cart | {action.menu_item_id})


def _add_to_cart_finished(state: DashboardState, action: AddToCartFinished) -> DashboardState:
    return replace(state, adding_to_cart=state.adding_to_cart - {action.menu_item_id})


def _checkout_started(state: DashboardState, action: CheckoutStarted) -> DashboardState:
    return replace(state, placing_order=True)


def _checkout_finished(state: DashboardState, action: CheckoutFinished) -> DashboardState:
    return replace(state, placing_order=False)


def _cart_visibility_set(state: DashboardState, action: CartVisibilitySet) -> DashboardState:
    return replace(state, cart_open=action.open)


def _notification_raised(state: DashboardState, action: NotificationRaised) -> DashboardState:
    return replace(state, notifications=(*state.notifications, action.notification))


def _notification_dismissed(state: DashboardState, action: NotificationDismissed) -> DashboardState:
    remaining = tuple(n for n in state.notifications if n.id != action.notification_id)
    return replace(state, notifications=remaining)


REDUCERS: dict[type, Callable[[DashboardState, Any], DashboardState]] = {
    MenuLoaded: _menu_loaded,
    CartLoaded: _cart_loaded,
    OrdersLoaded: _orders_loaded,
    LoadingFinished: _loading_finished,
    MenuItemPatched: _menu_item_patched,
    AddToCartStarted: _add_to_cart_started,
    AddToCartFinished: _add_to_cart_finished,
    CheckoutStarted: _checkout_started,
    CheckoutFinished: _checkout_finished,
    CartVisibilitySet: _cart_visibility_set,
    NotificationRaised: _notification_raised,
    NotificationDismissed: _notification_dismissed,
}

StateListener = Callable[[DashboardState, Any], None]


@dataclass
class DashboardStore:
    """Holds a session's state and applies queued actions through the reducers."""

    state: DashboardState = field(default_factory=DashboardState)
    _queue: deque[Any] = field(default_factory=deque, repr=False)
    _listeners: list[StateListener] = field(default_factory=list, repr=False)
    _draining: bool = field(default=False, repr=False)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(state, action)`` after every applied action.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, action: Any) -> DashboardState:
        """Queue an action and drain the queue unless a drain is already running.

        Actions dispatched from inside a listener are appended to the same
        queue and applied after the current one.

        Args:
            action: One of the action dataclasses in this module

        Returns:
            DashboardState after the queue has been drained
        """
        if type(action) not in REDUCERS:
            raise TypeError(f"No reducer registered for {type(action).__name__}")

        self._queue.append(action)
        if self._draining:
            return self.state

        self._draining = True
        try:
            while self._queue:
                current = self._queue.popleft()
                self.state = REDUCERS[type(current)](self.state, current)
                for listener in list(self._listeners):
                    listener(self.state, current)
        finally:
            self._draining = False
        return self.state
