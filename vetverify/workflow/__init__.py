"""
Verification workflow - state machine and the engine that drives it.
"""

from .state import WorkflowState, TRANSITIONS, state_of, can_transition, check_transition
from .engine import VerificationEngine, BatchResult, ReconcileReport, AccountLocks

__all__ = [
    "WorkflowState",
    "TRANSITIONS",
    "state_of",
    "can_transition",
    "check_transition",
    "VerificationEngine",
    "BatchResult",
    "ReconcileReport",
    "AccountLocks",
]
