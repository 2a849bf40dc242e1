"""Realtime change feed schemas."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class ChangeEvent(BaseModel):
    """A committed row-level change pushed to subscribers."""

    table: str
    event_type: Literal["INSERT", "UPDATE", "DELETE"]
    record: dict[str, Any] = Field(default_factory=dict, description="Row after the change")
    old_record: dict[str, Any] | None = Field(
        default=None, description="Row before the change (UPDATE/DELETE)"
    )
    committed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def value(self, column: str) -> Any:
        """Read a column from the new row, falling back to the old row."""
        if column in self.record:
            return self.record[column]
        if self.old_record is not None:
            return self.old_record.get(column)
        return None
