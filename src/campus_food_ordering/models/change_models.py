"""Realtime change-event models.

Row changes arrive as database-webhook payloads of the form::

    {"type": "UPDATE", "table": "orders", "schema": "public",
     "record": {...}, "old_record": {...}}
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChangeTypeEnum(str, Enum):
    """Kind of row change."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A single row change on a data store table."""

    model_config = ConfigDict(populate_by_name=True)

    type: ChangeTypeEnum = Field(..., description="Kind of change")
    table: str = Field(..., description="Table the row belongs to")
    schema_name: str = Field(default="public", alias="schema")
    record: dict[str, Any] | None = Field(None, description="Row after the change")
    old_record: dict[str, Any] | None = Field(None, description="Row before the change")

    def row(self) -> dict[str, Any]:
        """Return the most relevant row image (new row, or old row for deletes)."""
        if self.type == ChangeTypeEnum.DELETE:
            return self.old_record or {}
        return self.record or {}
