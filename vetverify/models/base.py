"""
Shared model plumbing: opaque ids and row timestamps.
"""

import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


def new_id(prefix: str) -> str:
    """Generate an opaque id with a readable prefix, e.g. doc-3f9a1c0b2d4e."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class BaseEntity(BaseModel):
    """
    A stored row with created/updated timestamps.

    Subclasses define their own id field. Rows from the hosted store carry
    columns we don't model; those are dropped on load.
    """
    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def touch(self, when: Optional[datetime] = None) -> None:
        """Stamp updated_at (now, unless a time is given)."""
        self.updated_at = when or datetime.now()
