"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel, Field


class FanOutResult(BaseModel):
    """Outcome of writing one notification per recipient for a single event."""

    created_ids: list[str] = Field(default_factory=list)
    failed_recipient_ids: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.created_ids)

    @property
    def failed(self) -> int:
        return len(self.failed_recipient_ids)


class BulkResult(BaseModel):
    """Outcome of applying one operation to many tasks."""

    succeeded: list[str] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)
