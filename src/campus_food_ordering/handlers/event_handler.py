"""Database-webhook handler for realtime row changes."""

import logging
from typing import Any

from pydantic import ValidationError

from campus_food_ordering.clients.data_store_client import RealtimeHub
from campus_food_ordering.models.change_models import ChangeEvent

logger = logging.getLogger(__name__)


def parse_change_event(payload: dict[str, Any]) -> ChangeEvent | None:
    """Parse a database-webhook payload into a ChangeEvent.

    Args:
        payload: Raw webhook body

    Returns:
        ChangeEvent if parsing succeeds, None otherwise
    """
    try:
        return ChangeEvent.model_validate(payload)
    except (ValidationError, TypeError) as e:
        logger.error(f"Failed to parse change event: {e}")
        return None


class ChangeEventHandler:
    """Publishes incoming row changes to the realtime hub.

    Subscribed sessions receive the event through their notifier handlers.
    """

    def __init__(self, hub: RealtimeHub) -> None:
        """Initialize the change event handler.

        Args:
            hub: Realtime hub that session notifiers are subscribed on
        """
        self.hub = hub

    async def handle_change(self, event: ChangeEvent) -> int:
        """Deliver a change event to all matching subscriptions.

        Args:
            event: The row change

        Returns:
            Number of handlers the event was delivered to
        """
        logger.info(f"Received {event.type.value} on {event.table}")
        return await self.hub.publish(event)

    async def handle_webhook(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Entry point for a raw webhook body.

        Args:
            payload: Webhook body as decoded JSON

        Returns:
            Dictionary with statusCode and body
        """
        event = parse_change_event(payload)
        if not event:
            return {"statusCode": 400, "body": "Invalid change event format"}

        delivered = await self.handle_change(event)
        return {"statusCode": 200, "body": f"Delivered to {delivered} handler(s)"}
