"""
Verification state machine.

The stored status has no "unsubmitted" value: an account without a
profile is unsubmitted whatever its professional_status column says.
"""

from enum import Enum
from typing import Optional

from ..errors import InvalidTransitionError
from ..models import ProfessionalStatus
from ..repositories import AccountRecord


class WorkflowState(str, Enum):
    UNSUBMITTED = "unsubmitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"

    @classmethod
    def from_status(cls, status: ProfessionalStatus) -> "WorkflowState":
        return cls(status.value)


TRANSITIONS: dict[WorkflowState, set[WorkflowState]] = {
    WorkflowState.UNSUBMITTED: {WorkflowState.PENDING},
    WorkflowState.PENDING: {WorkflowState.APPROVED, WorkflowState.REJECTED},
    WorkflowState.APPROVED: {WorkflowState.SUSPENDED},
    WorkflowState.SUSPENDED: {WorkflowState.APPROVED},
    WorkflowState.REJECTED: {WorkflowState.PENDING},
}

# States in which the professional may still edit their own profile
EDITABLE_STATES = {WorkflowState.PENDING, WorkflowState.APPROVED, WorkflowState.REJECTED}


def state_of(record: AccountRecord) -> WorkflowState:
    if record.profile is None:
        # A suspended account stays blocked even before it has a profile
        if record.account.professional_status is ProfessionalStatus.SUSPENDED:
            return WorkflowState.SUSPENDED
        return WorkflowState.UNSUBMITTED
    return WorkflowState.from_status(record.account.professional_status)


def can_transition(current: WorkflowState, target: WorkflowState) -> bool:
    return target in TRANSITIONS.get(current, set())


def check_transition(record: AccountRecord, target: WorkflowState,
                     required: Optional[WorkflowState] = None,
                     detail: Optional[str] = None) -> WorkflowState:
    """
    Raise InvalidTransitionError unless record may move to target.

    required narrows the allowed source state further, e.g. a review
    decision may only move a pending account even though a suspended
    account may also become approved (by reinstatement).
    """
    current = state_of(record)
    allowed = can_transition(current, target) and (required is None or current is required)
    if not allowed:
        raise InvalidTransitionError(record.account.id, current.value, target.value, detail=detail)
    return current
