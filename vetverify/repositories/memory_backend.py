"""
In-memory backend.

Used by tests and by embedders that bring their own persistence. One
re-entrant lock guards every table so commits and consistent reads are
atomic; callers always get copies, never the stored objects.
"""

import threading
from typing import Optional, Iterator

from ..errors import AccountNotFoundError
from ..models import (
    ProfessionalAccount,
    ProfessionalStatus,
    VerificationDocument,
    ReviewDecision,
    Notification,
)
from .base import (
    Repository,
    AccountRepository,
    ProfileRepository,
    DocumentRepository,
    DecisionRepository,
    NotificationRepository,
    AccountRecord,
    Profile,
)


def _copy(model):
    return model.model_copy(deep=True) if model is not None else None


class MemoryAccountRepository(AccountRepository):

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._rows: dict[str, ProfessionalAccount] = {}

    def get(self, id: str) -> Optional[ProfessionalAccount]:
        with self._lock:
            return _copy(self._rows.get(id))

    def save(self, entity: ProfessionalAccount) -> None:
        with self._lock:
            entity.touch()
            self._rows[entity.id] = _copy(entity)

    def list(self) -> list[ProfessionalAccount]:
        with self._lock:
            return [_copy(a) for a in self._rows.values()]

    def exists(self, id: str) -> bool:
        with self._lock:
            return id in self._rows


class MemoryProfileRepository(ProfileRepository):

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._versions: dict[str, list[Profile]] = {}

    def get_for_account(self, account_id: str) -> Optional[Profile]:
        with self._lock:
            versions = self._versions.get(account_id)
            return _copy(versions[-1]) if versions else None

    def history(self, account_id: str) -> list[Profile]:
        with self._lock:
            return [_copy(p) for p in self._versions.get(account_id, [])]

    def save(self, profile: Profile) -> None:
        with self._lock:
            versions = self._versions.setdefault(profile.account_id, [])
            profile.touch()
            if versions and versions[-1].version == profile.version:
                versions[-1] = _copy(profile)
            elif not versions or profile.version > versions[-1].version:
                versions.append(_copy(profile))
            else:
                raise ValueError(
                    f"Profile version {profile.version} for {profile.account_id} "
                    f"is older than current version {versions[-1].version}"
                )

    def list(self) -> list[Profile]:
        with self._lock:
            return [_copy(v[-1]) for v in self._versions.values() if v]


class MemoryDocumentRepository(DocumentRepository):

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._rows: dict[str, list[VerificationDocument]] = {}

    def get_for_account(self, account_id: str) -> list[VerificationDocument]:
        with self._lock:
            return [_copy(d) for d in self._rows.get(account_id, [])]

    def append(self, document: VerificationDocument) -> None:
        with self._lock:
            self._rows.setdefault(document.account_id, []).append(_copy(document))

    def save(self, document: VerificationDocument) -> None:
        with self._lock:
            docs = self._rows.setdefault(document.account_id, [])
            for i, existing in enumerate(docs):
                if existing.id == document.id:
                    docs[i] = _copy(document)
                    return
            docs.append(_copy(document))

    def list(self) -> list[VerificationDocument]:
        with self._lock:
            return [_copy(d) for docs in self._rows.values() for d in docs]


class MemoryDecisionRepository(DecisionRepository):

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._log: list[ReviewDecision] = []

    def append(self, decision: ReviewDecision) -> ReviewDecision:
        with self._lock:
            stored = decision.with_sequence(len(self._log) + 1)
            self._log.append(stored)
            return stored

    def get_for_account(self, account_id: str) -> list[ReviewDecision]:
        with self._lock:
            return [d for d in self._log if d.account_id == account_id]

    def iterate(self) -> Iterator[ReviewDecision]:
        with self._lock:
            snapshot = list(self._log)
        yield from snapshot


class MemoryNotificationRepository(NotificationRepository):

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._rows: dict[str, Notification] = {}

    def append(self, notification: Notification) -> None:
        with self._lock:
            self._rows[notification.id] = _copy(notification)

    def get(self, id: str) -> Optional[Notification]:
        with self._lock:
            return _copy(self._rows.get(id))

    def save(self, notification: Notification) -> None:
        with self._lock:
            self._rows[notification.id] = _copy(notification)

    def get_for_user(self, user_id: str) -> list[Notification]:
        with self._lock:
            rows = [_copy(n) for n in self._rows.values() if n.user_id == user_id]
        # Insertion order breaks created_at ties
        rows.reverse()
        return sorted(rows, key=lambda n: n.created_at, reverse=True)


class MemoryRepository(Repository):
    """In-memory backend implementation."""

    def __init__(self):
        self._lock = threading.RLock()
        self._accounts = MemoryAccountRepository(self._lock)
        self._profiles = MemoryProfileRepository(self._lock)
        self._documents = MemoryDocumentRepository(self._lock)
        self._decisions = MemoryDecisionRepository(self._lock)
        self._notifications = MemoryNotificationRepository(self._lock)

    @property
    def accounts(self) -> AccountRepository:
        return self._accounts

    @property
    def profiles(self) -> ProfileRepository:
        return self._profiles

    @property
    def documents(self) -> DocumentRepository:
        return self._documents

    @property
    def decisions(self) -> DecisionRepository:
        return self._decisions

    @property
    def notifications(self) -> NotificationRepository:
        return self._notifications

    def load(self, account_id: str) -> Optional[AccountRecord]:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            return AccountRecord(
                account=account,
                profile=self._profiles.get_for_account(account_id),
                documents=self._documents.get_for_account(account_id),
            )

    def load_all(self) -> list[AccountRecord]:
        with self._lock:
            return [self.load(a.id) for a in self._accounts.list()]

    def commit_submission(self, account_id: str, profile: Profile,
                          documents: list[VerificationDocument]) -> AccountRecord:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            self._profiles.save(profile)
            for doc in documents:
                self._documents.append(doc)
            account.professional_status = profile.status
            self._accounts.save(account)
            return self.load(account_id)

    def commit_status(self, account_id: str, status: ProfessionalStatus,
                      decision: Optional[ReviewDecision] = None,
                      documents: Optional[list[VerificationDocument]] = None) -> tuple[AccountRecord, Optional[ReviewDecision]]:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            profile = self._profiles.get_for_account(account_id)

            stored = self._decisions.append(decision) if decision is not None else None
            for doc in documents or []:
                self._documents.save(doc)
            if profile is not None:
                profile.status = status
                self._profiles.save(profile)
            account.professional_status = status
            self._accounts.save(account)
            return self.load(account_id), stored
