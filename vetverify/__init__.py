"""
vetverify - verification workflow for veterinarians and vendors.

    from vetverify import VerificationEngine, ReviewQueue
"""

from .config import Settings, load_settings
from .errors import (
    VerificationError,
    ValidationError,
    DocumentsIncompleteError,
    AccountNotFoundError,
    InvalidTransitionError,
    PartialBatchFailure,
)
from .review_queue import ReviewQueue, ReviewSelection, QueueFilter, QueuePage
from .workflow import VerificationEngine, BatchResult, ReconcileReport

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_settings",
    "VerificationError",
    "ValidationError",
    "DocumentsIncompleteError",
    "AccountNotFoundError",
    "InvalidTransitionError",
    "PartialBatchFailure",
    "ReviewQueue",
    "ReviewSelection",
    "QueueFilter",
    "QueuePage",
    "VerificationEngine",
    "BatchResult",
    "ReconcileReport",
]
