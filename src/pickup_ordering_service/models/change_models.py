"""Table change notification models.

A change describes one row event on a backend table. Changes arrive from the
backend database webhook or are published locally after this service writes.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChangeType(str, Enum):
    """Enumeration of row event types."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class TableChange(BaseModel):
    """A row change on a backend table.

    Field aliases match the database webhook payload
    (``type``, ``table``, ``record``, ``old_record``).
    """

    model_config = ConfigDict(populate_by_name=True)

    table: str = Field(..., description="Table that changed")
    event_type: ChangeType = Field(..., alias="type", description="Kind of row event")
    schema_name: str = Field(default="public", alias="schema")
    record: dict[str, Any] | None = Field(None, description="Row after the change")
    old_record: dict[str, Any] | None = Field(None, description="Row before the change")
