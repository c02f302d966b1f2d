"""Client for the backend-as-a-service table API.

The data store exposes every table through a PostgREST-style HTTP API. This
client wraps the four generic table operations and a local realtime hub that
fans row-change events out to subscribers.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from campus_food_ordering.models.change_models import ChangeEvent, ChangeTypeEnum
from campus_food_ordering.observability import traced
from campus_food_ordering.observability.metrics import record_realtime_event

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]


@dataclass(frozen=True)
class Filter:
    """A single column filter in PostgREST ``column=op.value`` form."""

    column: str
    operator: str
    value: Any

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, "eq", value)

    @classmethod
    def gt(cls, column: str, value: Any) -> "Filter":
        return cls(column, "gt", value)

    @classmethod
    def in_(cls, column: str, values: list[Any]) -> "Filter":
        return cls(column, "in", list(values))

    def to_param(self) -> tuple[str, str]:
        if self.operator == "in":
            joined = ",".join(str(v) for v in self.value)
            return self.column, f"in.({joined})"
        return self.column, f"{self.operator}.{self.value}"

    def matches(self, row: dict[str, Any]) -> bool:
        """Check a row against the filter (only equality is evaluated locally)."""
        if self.operator != "eq":
            return True
        return str(row.get(self.column)) == str(self.value)


@dataclass(frozen=True)
class Ordering:
    """Sort order for a select."""

    column: str
    ascending: bool = True

    def to_param(self) -> str:
        return f"{self.column}.{'asc' if self.ascending else 'desc'}"


@dataclass
class ChangeHandlers:
    """Callbacks for each kind of row change; any of them may be omitted."""

    on_insert: ChangeCallback | None = None
    on_update: ChangeCallback | None = None
    on_delete: ChangeCallback | None = None

    def for_type(self, change_type: ChangeTypeEnum) -> ChangeCallback | None:
        return {
            ChangeTypeEnum.INSERT: self.on_insert,
            ChangeTypeEnum.UPDATE: self.on_update,
            ChangeTypeEnum.DELETE: self.on_delete,
        }[change_type]


@dataclass
class Subscription:
    """A registered realtime subscription on one table."""

    table: str
    handlers: ChangeHandlers
    row_filter: Filter | None = None
    hub: "RealtimeHub | None" = field(default=None, repr=False)

    def accepts(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.row_filter is None:
            return True
        return self.row_filter.matches(event.row())

    def unsubscribe(self) -> None:
        if self.hub is not None:
            self.hub.remove(self)
            self.hub = None


class RealtimeHub:
    """In-process fan-out of change events to table subscriptions."""

    def __init__(self) -> None:
        self.subscriptions: list[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        subscription.hub = self
        self.subscriptions.append(subscription)
        return subscription

    def remove(self, subscription: Subscription) -> None:
        if subscription in self.subscriptions:
            self.subscriptions.remove(subscription)

    async def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching subscription.

        Handlers run one after another in subscription order. A failing
        handler is logged and does not stop delivery to the others.

        Args:
            event: The change event to deliver

        Returns:
            Number of handlers that completed without raising
        """
        record_realtime_event(event.table, event.type.value)
        delivered = 0
        for subscription in list(self.subscriptions):
            if not subscription.accepts(event):
                continue
            callback = subscription.handlers.for_type(event.type)
            if callback is None:
                continue
            try:
                await callback(event)
            except Exception:
                logger.exception(f"Realtime handler failed for {event.type.value} on {event.table}")
            else:
                delivered += 1
        return delivered


class DataStoreClient:
    """HTTP client for the data store's generic table operations.

    Expected remote failures (HTTP error status, network errors) are logged and
    reported through simple return values: ``None`` for reads and inserts,
    ``False`` for updates and deletes.
    """

    def __init__(self, base_url: str, api_key: str, hub: RealtimeHub | None = None) -> None:
        """Initialize the data store client.

        Args:
            base_url: Project URL of the data store (e.g., "https://xyz.supabase.co")
            api_key: API key sent as ``apikey`` and bearer token
            hub: Realtime hub to register subscriptions on (a new one if omitted)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.hub = hub or RealtimeHub()

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    @staticmethod
    def _params(
        filters: list[Filter] | None = None,
        ordering: list[Ordering] | None = None,
        columns: str | None = None,
    ) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if columns is not None:
            params.append(("select", columns))
        for row_filter in filters or []:
            params.append(row_filter.to_param())
        if ordering:
            params.append(("order", ",".join(o.to_param() for o in ordering)))
        return params

    @traced("data_store.select", service_name="campus-food-ordering")
    async def select(
        self,
        table: str,
        filters: list[Filter] | None = None,
        ordering: list[Ordering] | None = None,
        columns: str = "*",
    ) -> list[dict[str, Any]] | None:
        """Select rows from a table.

        Args:
            table: Table name
            filters: Column filters, combined with AND
            ordering: Sort order
            columns: PostgREST select expression, may embed related tables

        Returns:
            List of rows, or None on failure
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self._table_url(table),
                    params=self._params(filters, ordering, columns),
                    headers=self._headers(),
                )
                response.raise_for_status()
                rows: list[dict[str, Any]] = response.json() or []
                return rows

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to select from {table}: {e}")
            return None

    @traced("data_store.insert", service_name="campus-food-ordering")
    async def insert(
        self, table: str, rows: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]] | None:
        """Insert one or more rows and return them with their assigned identities.

        Args:
            table: Table name
            rows: A single row or a list of rows

        Returns:
            The inserted rows as stored, or None on failure
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._table_url(table),
                    json=rows,
                    headers=self._headers(Prefer="return=representation"),
                )
                response.raise_for_status()
                inserted: list[dict[str, Any]] = response.json() or []
                return inserted

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to insert into {table}: {e}")
            return None

    @traced("data_store.update", service_name="campus-food-ordering")
    async def update(self, table: str, filters: list[Filter], patch: dict[str, Any]) -> bool:
        """Apply a partial update to every row matching the filters.

        Args:
            table: Table name
            filters: Column filters selecting the rows to update
            patch: Column values to set

        Returns:
            bool: True if the update succeeded, False otherwise
        """
        if not filters:
            raise ValueError("update requires at least one filter")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.patch(
                    self._table_url(table),
                    params=self._params(filters),
                    json=patch,
                    headers=self._headers(),
                )
                response.raise_for_status()
                return True

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to update {table}: {e}")
            return False

    @traced("data_store.delete", service_name="campus-food-ordering")
    async def delete(self, table: str, filters: list[Filter]) -> bool:
        """Delete every row matching the filters.

        Args:
            table: Table name
            filters: Column filters selecting the rows to delete

        Returns:
            bool: True if the delete succeeded, False otherwise
        """
        if not filters:
            raise ValueError("delete requires at least one filter")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.delete(
                    self._table_url(table),
                    params=self._params(filters),
                    headers=self._headers(),
                )
                response.raise_for_status()
                return True

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to delete from {table}: {e}")
            return False

    def subscribe(
        self,
        table: str,
        handlers: ChangeHandlers,
        row_filter: Filter | None = None,
    ) -> Subscription:
        """Register a realtime change feed on a table.

        Args:
            table: Table to watch
            handlers: Insert/update/delete callbacks
            row_filter: Optional equality filter scoping the feed (e.g., owning user)

        Returns:
            Subscription that can be cancelled with ``unsubscribe()``
        """
        logger.debug(f"Subscribing to realtime changes on {table}")
        return self.hub.add(Subscription(table=table, handlers=handlers, row_filter=row_filter))
