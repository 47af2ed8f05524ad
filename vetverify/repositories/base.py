"""
Repository base classes - define the interface.

The hosted store is the system of record; these interfaces are all the
workflow engine and the review queue ever see of it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Optional, Iterator, Union

from ..models import (
    ProfessionalAccount,
    ProfessionalStatus,
    VeterinarianProfile,
    VendorProfile,
    VerificationDocument,
    ReviewDecision,
    Notification,
)

T = TypeVar("T")
Profile = Union[VeterinarianProfile, VendorProfile]


@dataclass
class AccountRecord:
    """An account with its current profile and documents, read as one unit."""
    account: ProfessionalAccount
    profile: Optional[Profile] = None
    documents: list[VerificationDocument] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.profile.display_name if self.profile else ""

    @property
    def in_sync(self) -> bool:
        """Account and profile status agree (or there is no profile)."""
        return self.profile is None or self.profile.status == self.account.professional_status


class BaseRepository(ABC, Generic[T]):
    """Abstract base for entity repositories."""

    @abstractmethod
    def get(self, id: str) -> Optional[T]:
        """Get entity by ID."""
        pass

    @abstractmethod
    def save(self, entity: T) -> None:
        """Save entity."""
        pass

    @abstractmethod
    def list(self) -> list[T]:
        """List all entities."""
        pass

    @abstractmethod
    def exists(self, id: str) -> bool:
        """Check if entity exists."""
        pass


class AccountRepository(BaseRepository[ProfessionalAccount]):
    """Repository for accounts."""


class ProfileRepository(ABC):
    """
    Repository for professional profiles.

    Profiles are versioned and never deleted. Saving a profile whose
    version matches the current one updates it in place; a higher version
    supersedes it.
    """

    @abstractmethod
    def get_for_account(self, account_id: str) -> Optional[Profile]:
        """Current profile version for the account."""
        pass

    @abstractmethod
    def history(self, account_id: str) -> list[Profile]:
        """All versions, oldest first."""
        pass

    @abstractmethod
    def save(self, profile: Profile) -> None:
        pass

    @abstractmethod
    def list(self) -> list[Profile]:
        """Current version of every profile."""
        pass


class DocumentRepository(ABC):
    """Repository for verification documents."""

    @abstractmethod
    def get_for_account(self, account_id: str) -> list[VerificationDocument]:
        pass

    @abstractmethod
    def append(self, document: VerificationDocument) -> None:
        pass

    @abstractmethod
    def save(self, document: VerificationDocument) -> None:
        """Update an existing document."""
        pass

    @abstractmethod
    def list(self) -> list[VerificationDocument]:
        pass


class DecisionRepository(ABC):
    """Append-only audit trail of review decisions."""

    @abstractmethod
    def append(self, decision: ReviewDecision) -> ReviewDecision:
        """Append and return the decision with its sequence assigned."""
        pass

    @abstractmethod
    def get_for_account(self, account_id: str) -> list[ReviewDecision]:
        """Decisions for an account in sequence order."""
        pass

    @abstractmethod
    def iterate(self) -> Iterator[ReviewDecision]:
        """Iterate every decision in sequence order."""
        pass

    def latest(self, account_id: str) -> Optional[ReviewDecision]:
        decisions = self.get_for_account(account_id)
        return decisions[-1] if decisions else None

    def count(self) -> int:
        return sum(1 for _ in self.iterate())


class NotificationRepository(ABC):
    """Repository for the in-app notification feed."""

    @abstractmethod
    def append(self, notification: Notification) -> None:
        pass

    @abstractmethod
    def get(self, id: str) -> Optional[Notification]:
        pass

    @abstractmethod
    def save(self, notification: Notification) -> None:
        """Persist a read-flag change."""
        pass

    @abstractmethod
    def get_for_user(self, user_id: str) -> list[Notification]:
        """Newest first."""
        pass

    def count_unread(self, user_id: str) -> int:
        return sum(1 for n in self.get_for_user(user_id) if not n.is_read)


class Repository(ABC):
    """
    Aggregate repository - provides access to all entity repositories.

    The two commit methods are the only way status changes are written:
    account status and profile status must land together.
    """

    @property
    @abstractmethod
    def accounts(self) -> AccountRepository:
        pass

    @property
    @abstractmethod
    def profiles(self) -> ProfileRepository:
        pass

    @property
    @abstractmethod
    def documents(self) -> DocumentRepository:
        pass

    @property
    @abstractmethod
    def decisions(self) -> DecisionRepository:
        pass

    @property
    @abstractmethod
    def notifications(self) -> NotificationRepository:
        pass

    @abstractmethod
    def load(self, account_id: str) -> Optional[AccountRecord]:
        """Consistent read of an account, its profile and documents."""
        pass

    @abstractmethod
    def load_all(self) -> list[AccountRecord]:
        """Consistent read of every account."""
        pass

    @abstractmethod
    def commit_submission(self, account_id: str, profile: Profile,
                          documents: list[VerificationDocument]) -> AccountRecord:
        """
        Store a new profile version and its documents, and set the
        account status to the profile's status, as one unit.
        """
        pass

    @abstractmethod
    def commit_status(self, account_id: str, status: ProfessionalStatus,
                      decision: Optional[ReviewDecision] = None,
                      documents: Optional[list[VerificationDocument]] = None) -> tuple[AccountRecord, Optional[ReviewDecision]]:
        """
        Set account and profile status together, append the decision (if
        any) and persist updated documents. Returns the new record and the
        stored decision.
        """
        pass
