"""Unit tests for SessionRegistry."""

from typing import Any
from unittest.mock import patch

import pytest

from campus_food_ordering.services.session_registry import SessionRegistry


@pytest.fixture
def registry(memory_store: Any, menu_item_rows: list[dict[str, Any]]) -> SessionRegistry:
    """Create a SessionRegistry over an in-memory store holding the sample menu."""
    memory_store.tables["menu_items"] = [dict(row) for row in menu_item_rows]
    return SessionRegistry(memory_store)


@pytest.mark.unit
class TestSessionRegistry:
    """Test suite for session creation and caching."""

    @pytest.mark.asyncio
    async def test_first_use_creates_and_loads(self, registry: SessionRegistry, user_id: str) -> None:
        """Test that a new session is loaded and subscribed to realtime feeds."""
        session = await registry.get_session(user_id, "Priya Sharma")

        assert session.user_id == user_id
        assert session.state.loading is False
        assert [item.name for item in session.state.menu_items] == ["Tea", "Veg Thali"]
        assert session.greeting_name == "Priya"
        assert len(registry.client.hub.subscriptions) == 3

    @pytest.mark.asyncio
    async def test_session_is_cached(self, registry: SessionRegistry, user_id: str) -> None:
        """Test that the same session is returned and its name updated."""
        first = await registry.get_session(user_id, "Priya Sharma")
        second = await registry.get_session(user_id, "Anita Rao")

        assert first is second
        assert second.greeting_name == "Anita"
        assert len(registry.client.hub.subscriptions) == 3

    @pytest.mark.asyncio
    async def test_sessions_share_checkout_guard(self, registry: SessionRegistry) -> None:
        """Test that sessions share repositories and the checkout service."""
        alice = await registry.get_session("alice")
        bob = await registry.get_session("bob")

        assert alice is not bob
        assert alice.checkout_service is bob.checkout_service is registry.checkout_service
        assert alice.cart_repository is bob.cart_repository

    @pytest.mark.asyncio
    async def test_close_session(self, registry: SessionRegistry, user_id: str) -> None:
        """Test that closing a session drops it and its subscriptions."""
        await registry.get_session(user_id)

        assert registry.close_session(user_id) is True
        assert registry.client.hub.subscriptions == []
        assert registry.close_session(user_id) is False


@pytest.mark.unit
class TestIdleEviction:
    """Test suite for closing sessions nobody is using."""

    @pytest.fixture
    def idle_registry(self, memory_store: Any, menu_item_rows: list[dict[str, Any]]) -> SessionRegistry:
        """Create a registry that closes sessions idle for more than 60 seconds."""
        memory_store.tables["menu_items"] = [dict(row) for row in menu_item_rows]
        return SessionRegistry(memory_store, idle_timeout_seconds=60)

    @pytest.mark.asyncio
    async def test_idle_session_leaves_hub(self, idle_registry: SessionRegistry) -> None:
        """Test that an idle session is closed and its subscriptions removed."""
        await idle_registry.get_session("alice")
        await idle_registry.get_session("bob")
        idle_registry.last_access["alice"] -= 120

        assert idle_registry.evict_idle() == ["alice"]
        assert set(idle_registry.sessions) == {"bob"}
        assert "alice" not in idle_registry.last_access
        assert len(idle_registry.client.hub.subscriptions) == 3

    @pytest.mark.asyncio
    async def test_get_session_sweeps_idle_sessions(self, idle_registry: SessionRegistry) -> None:
        """Test that a request from one user closes another user's stale session."""
        await idle_registry.get_session("alice")
        idle_registry.last_access["alice"] -= 120

        await idle_registry.get_session("bob")

        assert list(idle_registry.sessions) == ["bob"]
        assert len(idle_registry.client.hub.subscriptions) == 3

    @pytest.mark.asyncio
    async def test_returning_after_timeout_gets_fresh_session(self, idle_registry: SessionRegistry) -> None:
        """Test that a stale session is replaced by a newly loaded one without leaking feeds."""
        first = await idle_registry.get_session("alice")
        idle_registry.last_access["alice"] -= 120

        second = await idle_registry.get_session("alice")

        assert first is not second
        assert len(idle_registry.client.hub.subscriptions) == 3

    @pytest.mark.asyncio
    async def test_recent_use_keeps_session(self, idle_registry: SessionRegistry) -> None:
        first = await idle_registry.get_session("alice")
        second = await idle_registry.get_session("alice")

        assert first is second
        assert idle_registry.evict_idle(now=idle_registry.last_access["alice"] + 30) == []

    @pytest.mark.asyncio
    async def test_checkout_in_flight_is_not_evicted(self, idle_registry: SessionRegistry) -> None:
        """Test that a session mid-checkout survives the sweep."""
        await idle_registry.get_session("alice")
        idle_registry.last_access["alice"] -= 120

        with patch.object(idle_registry.checkout_service, "is_in_flight", return_value=True):
            assert idle_registry.evict_idle() == []

        assert "alice" in idle_registry.sessions

    @pytest.mark.asyncio
    async def test_no_timeout_never_evicts(self, registry: SessionRegistry, user_id: str) -> None:
        await registry.get_session(user_id)
        registry.last_access[user_id] -= 10_000

        assert registry.evict_idle() == []
        assert user_id in registry.sessions
