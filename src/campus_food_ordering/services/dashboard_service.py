"""Dashboard session service: the operations behind one student's dashboard."""

import logging
import uuid

from campus_food_ordering.models.menu_models import MenuItem
from campus_food_ordering.repositories.food_repositories import (
    AddToCartOutcome,
    CartRepository,
    MenuRepository,
    OrderRepository,
)
from campus_food_ordering.services.checkout_service import CheckoutResult, CheckoutService
from campus_food_ordering.state.dashboard_state import (
    AddToCartFinished,
    AddToCartStarted,
    CartLoaded,
    CartVisibilitySet,
    CheckoutFinished,
    CheckoutStarted,
    DashboardState,
    DashboardStore,
    LoadingFinished,
    MenuLoaded,
    Notification,
    NotificationDismissed,
    NotificationRaised,
    OrdersLoaded,
    SeverityEnum,
)

logger = logging.getLogger(__name__)

DEFAULT_GREETING_NAME = "Student"


class DashboardService:
    """Service for one user's dashboard session.

    Every remote result is turned into an action on the session's store.
    Failures are logged, surfaced as notifications, and leave the last
    successfully loaded state in place.
    """

    def __init__(
        self,
        user_id: str,
        menu_repository: MenuRepository,
        cart_repository: CartRepository,
        order_repository: OrderRepository,
        checkout_service: CheckoutService,
        display_name: str | None = None,
        store: DashboardStore | None = None,
    ) -> None:
        """Initialize the DashboardService.

        Args:
            user_id: Identity of the authenticated user
            menu_repository: Repository for menu items
            cart_repository: Repository for the user's cart
            order_repository: Repository for the user's orders
            checkout_service: Orchestrator for placing orders
            display_name: Full display name of the user, if known
            store: State container (a fresh one if omitted)
        """
        self.user_id = user_id
        self.display_name = display_name
        self.menu_repository = menu_repository
        self.cart_repository = cart_repository
        self.order_repository = order_repository
        self.checkout_service = checkout_service
        self.store = store or DashboardStore()

    @property
    def state(self) -> DashboardState:
        return self.store.state

    @property
    def greeting_name(self) -> str:
        """First word of the display name, for the welcome header."""
        if self.display_name and self.display_name.split():
            return self.display_name.split()[0]
        return DEFAULT_GREETING_NAME

    def notify(self, message: str, severity: SeverityEnum) -> Notification:
        notification = Notification(id=f"ntf_{uuid.uuid4().hex[:12]}", message=message, severity=severity)
        self.store.dispatch(NotificationRaised(notification))
        return notification

    def dismiss_notification(self, notification_id: str) -> bool:
        """Remove a notification.

        Returns:
            bool: True if the notification existed
        """
        exists = any(n.id == notification_id for n in self.state.notifications)
        self.store.dispatch(NotificationDismissed(notification_id))
        return exists

    def open_cart(self) -> None:
        self.store.dispatch(CartVisibilitySet(open=True))

    def close_cart(self) -> None:
        self.store.dispatch(CartVisibilitySet(open=False))

    async def load(self) -> None:
        """Initial fetch of menu, cart and orders."""
        try:
            await self.refresh_menu()
        finally:
            self.store.dispatch(LoadingFinished())
        await self.refresh_cart()
        await self.refresh_orders()

    async def refresh_menu(self) -> bool:
        items = await self.menu_repository.list_available()
        if items is None:
            logger.error("Error fetching menu items")
            self.notify("Failed to load menu items", SeverityEnum.ERROR)
            return False
        self.store.dispatch(MenuLoaded(items))
        return True

    async def refresh_cart(self) -> bool:
        lines = await self.cart_repository.list_for_user(self.user_id)
        if lines is None:
            logger.error(f"Error fetching cart items for user {self.user_id}")
            self.notify("Failed to load cart", SeverityEnum.ERROR)
            return False
        self.store.dispatch(CartLoaded(lines))
        return True

    async def refresh_orders(self) -> bool:
        orders = await self.order_repository.list_for_user(self.user_id)
        if orders is None:
            logger.error(f"Error fetching orders for user {self.user_id}")
            self.notify("Failed to load orders", SeverityEnum.ERROR)
            return False
        self.store.dispatch(OrdersLoaded(orders))
        return True

    async def add_to_cart(self, menu_item_id: str) -> AddToCartOutcome:
        """Add one unit of a loaded menu item to the cart.

        Unknown and out-of-stock items are ignored, as is a repeat add for an
        item whose previous add is still outstanding.

        Args:
            menu_item_id: Menu item to add

        Returns:
            AddToCartOutcome from the cart repository (IGNORED if not attempted)
        """
        menu_item: MenuItem | None = self.state.find_menu_item(menu_item_id)
        if menu_item is None or menu_item.is_out_of_stock:
            logger.info(f"Ignoring add to cart for unavailable item {menu_item_id}")
            return AddToCartOutcome.IGNORED

        if self.cart_repository.is_adding(self.user_id, menu_item_id):
            return AddToCartOutcome.IGNORED

        self.store.dispatch(AddToCartStarted(menu_item_id))
        try:
            outcome = await self.cart_repository.add_or_increment(self.user_id, menu_item)
            if outcome == AddToCartOutcome.FAILED:
                logger.error(f"Error adding {menu_item_id} to cart for user {self.user_id}")
                self.notify("Failed to add item to cart", SeverityEnum.ERROR)
            elif outcome != AddToCartOutcome.IGNORED:
                self.notify(f"{menu_item.name} added to cart!", SeverityEnum.SUCCESS)
                await self.refresh_cart()
            return outcome
        finally:
            self.store.dispatch(AddToCartFinished(menu_item_id))

    async def update_cart_quantity(self, cart_line_id: str, quantity: int) -> bool:
        """Set a cart line's quantity; zero or less removes the line.

        Returns:
            bool: True if the write succeeded
        """
        if not await self.cart_repository.set_quantity(self.user_id, cart_line_id, quantity):
            logger.error(f"Error updating cart line {cart_line_id}")
            self.notify("Failed to update cart", SeverityEnum.ERROR)
            return False

        await self.refresh_cart()
        return True

    async def place_order(self) -> CheckoutResult:
        """Check out the current cart snapshot.

        Rejected attempts (empty cart, checkout already running) are silent.

        Returns:
            CheckoutResult from the checkout saga
        """
        cart_snapshot = list(self.state.cart_lines)
        if not cart_snapshot or self.checkout_service.is_in_flight(self.user_id):
            return await self.checkout_service.place_order(user_id=self.user_id, cart_lines=cart_snapshot)

        self.store.dispatch(CheckoutStarted())
        try:
            result = await self.checkout_service.place_order(user_id=self.user_id, cart_lines=cart_snapshot)
        finally:
            self.store.dispatch(CheckoutFinished())

        if result.rejected:
            return result

        if not result.success:
            logger.error(f"Error placing order for user {self.user_id}: {result.failed_step} failed")
            self.notify("Failed to place order", SeverityEnum.ERROR)
            return result

        self.notify("Order placed successfully!", SeverityEnum.SUCCESS)
        self.close_cart()
        await self.refresh_cart()
        await self.refresh_orders()
        await self.refresh_menu()
        return result
