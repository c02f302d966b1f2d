"""Unit tests for the realtime database-webhook handler."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from campus_food_ordering.clients.data_store_client import RealtimeHub
from campus_food_ordering.handlers.event_handler import ChangeEventHandler, parse_change_event
from campus_food_ordering.models.change_models import ChangeTypeEnum


@pytest.fixture
def order_ready_payload() -> dict[str, Any]:
    """Fixture providing a webhook body for an order becoming ready."""
    return {
        "type": "UPDATE",
        "table": "orders",
        "schema": "public",
        "record": {"id": "o1", "user_id": "user_123", "status": "ready"},
        "old_record": {"id": "o1", "user_id": "user_123", "status": "processing"},
    }


@pytest.mark.unit
class TestParseChangeEvent:
    """Test suite for webhook payload parsing."""

    def test_parse_valid_payload(self, order_ready_payload: dict[str, Any]) -> None:
        event = parse_change_event(order_ready_payload)

        assert event is not None
        assert event.type == ChangeTypeEnum.UPDATE
        assert event.table == "orders"
        assert event.record["status"] == "ready"

    def test_parse_missing_table(self) -> None:
        """Test that a payload without a table is rejected."""
        assert parse_change_event({"type": "INSERT", "record": {"id": "x"}}) is None

    def test_parse_unknown_change_type(self) -> None:
        assert parse_change_event({"type": "TRUNCATE", "table": "orders"}) is None


@pytest.mark.unit
class TestChangeEventHandler:
    """Test suite for ChangeEventHandler."""

    @pytest.fixture
    def hub(self) -> MagicMock:
        """Create a mock RealtimeHub."""
        hub = MagicMock(spec=RealtimeHub)
        hub.publish = AsyncMock(return_value=2)
        return hub

    @pytest.mark.asyncio
    async def test_webhook_publishes_event(self, hub: MagicMock, order_ready_payload: dict[str, Any]) -> None:
        """Test that a valid webhook is published to the hub."""
        handler = ChangeEventHandler(hub)

        result = await handler.handle_webhook(order_ready_payload)

        assert result["statusCode"] == 200
        assert "2 handler(s)" in result["body"]
        published = hub.publish.await_args.args[0]
        assert published.table == "orders"

    @pytest.mark.asyncio
    async def test_invalid_webhook_returns_400(self, hub: MagicMock) -> None:
        """Test that a malformed payload is rejected without publishing."""
        handler = ChangeEventHandler(hub)

        result = await handler.handle_webhook({"unexpected": True})

        assert result["statusCode"] == 400
        assert "Invalid change event format" in result["body"]
        hub.publish.assert_not_called()
