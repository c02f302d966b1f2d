"""Registry of live dashboard sessions, one per user."""

import logging
import time

from campus_food_ordering.clients.data_store_client import DataStoreClient
from campus_food_ordering.repositories.food_repositories import (
    CartRepository,
    MenuRepository,
    OrderRepository,
)
from campus_food_ordering.services.checkout_service import CheckoutService
from campus_food_ordering.services.dashboard_service import DashboardService
from campus_food_ordering.services.realtime_notifier import RealtimeNotifier

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Creates, loads and caches a DashboardService per user identity.

    Repositories and the checkout service are shared across sessions, so the
    add-to-cart markers and the checkout in-flight guard are process-wide
    and keyed by user.
    """

    def __init__(self, client: DataStoreClient, idle_timeout_seconds: float | None = None) -> None:
        """Initialize the registry.

        Args:
            client: Data store client shared by all sessions
            idle_timeout_seconds: Close sessions unused for longer than this;
                None keeps sessions until they are closed explicitly
        """
        self.client = client
        self.menu_repository = MenuRepository(client)
        self.cart_repository = CartRepository(client)
        self.order_repository = OrderRepository(client)
        self.checkout_service = CheckoutService(
            order_repository=self.order_repository,
            menu_repository=self.menu_repository,
            cart_repository=self.cart_repository,
        )
        self.sessions: dict[str, DashboardService] = {}
        self.notifiers: dict[str, RealtimeNotifier] = {}
        self.last_access: dict[str, float] = {}
        self.idle_timeout_seconds = idle_timeout_seconds

    async def get_session(self, user_id: str, display_name: str | None = None) -> DashboardService:
        """Return the user's session, creating and loading it on first use.

        Args:
            user_id: Authenticated user identity
            display_name: Display name, stored on first use or when it changes

        Returns:
            The user's DashboardService
        """
        self.evict_idle()

        session = self.sessions.get(user_id)
        if session is not None:
            if display_name:
                session.display_name = display_name
            self.last_access[user_id] = time.monotonic()
            return session

        session = DashboardService(
            user_id=user_id,
            menu_repository=self.menu_repository,
            cart_repository=self.cart_repository,
            order_repository=self.order_repository,
            checkout_service=self.checkout_service,
            display_name=display_name,
        )
        self.sessions[user_id] = session
        self.last_access[user_id] = time.monotonic()

        await session.load()
        notifier = RealtimeNotifier(session, self.client)
        notifier.start()
        self.notifiers[user_id] = notifier

        logger.info(f"Dashboard session created for user {user_id}")
        return session

    def close_session(self, user_id: str) -> bool:
        """Stop a session's realtime feeds and forget it.

        Returns:
            bool: True if a session existed
        """
        notifier = self.notifiers.pop(user_id, None)
        if notifier is not None:
            notifier.stop()
        self.last_access.pop(user_id, None)
        return self.sessions.pop(user_id, None) is not None

    def evict_idle(self, now: float | None = None) -> list[str]:
        """Close sessions idle past the timeout.

        A session with a checkout in flight is kept until the checkout ends.

        Args:
            now: Monotonic timestamp to measure idleness against

        Returns:
            list[str]: User ids whose sessions were closed
        """
        if self.idle_timeout_seconds is None:
            return []

        now = time.monotonic() if now is None else now
        expired = [
            user_id
            for user_id, last_seen in self.last_access.items()
            if now - last_seen > self.idle_timeout_seconds and not self.checkout_service.is_in_flight(user_id)
        ]
        for user_id in expired:
            self.close_session(user_id)

        if expired:
            logger.info(f"Evicted {len(expired)} idle dashboard session(s)")
        return expired
