"""
ReviewDecision - append-only audit trail of admin dispositions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from .base import new_id
from .enums import ProfessionalStatus


class DecisionDetails(BaseModel):
    """Optional context an admin attaches to a decision."""
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: Optional[str] = None
    comments: Optional[str] = None


class ReviewDecision(BaseModel):
    """
    One admin action on one account.

    sequence is assigned by the repository when the decision is appended
    and is the total order used to decide which decision is current.
    Records are frozen once written.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("decision"))
    sequence: int = 0
    account_id: str
    status: ProfessionalStatus
    reason: Optional[str] = None
    comments: Optional[str] = None
    admin_id: Optional[str] = None
    decided_at: datetime = Field(default_factory=datetime.now)

    def with_sequence(self, sequence: int) -> "ReviewDecision":
        return self.model_copy(update={"sequence": sequence})
