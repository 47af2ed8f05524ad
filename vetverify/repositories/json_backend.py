"""
JSON file backend - stores data as JSON/JSONL files.

Directory structure:
    {base}/
        accounts/{id}.json         - account + profile versions + documents
        decisions.jsonl            - review decisions (append-only)
        notifications/{user}.json  - notification feed per user

An account's status, its profile status and its documents share one file
and are replaced atomically. A decision is appended to the log before the
account file is rewritten, so a crash in between leaves a decision the
account does not reflect yet; the engine's reconcile pass repairs that.
"""

import fcntl
import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator

from ..errors import AccountNotFoundError
from ..models import (
    ProfessionalAccount,
    ProfessionalStatus,
    VerificationDocument,
    ReviewDecision,
    Notification,
    parse_profile,
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

logger = logging.getLogger(__name__)


def _safe_name(id: str) -> str:
    return str(id).replace("\\", "_").replace("/", "_")


class WriteQueue:
    """Thread-safe write serialization."""

    def __init__(self):
        self._lock = threading.Lock()

    def write_json(self, path: Path, data) -> None:
        """Atomic JSON write."""
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp = path.with_suffix(".json.tmp")
            with open(temp, "w") as f:
                json.dump(data, f, indent=2, default=str)
            temp.replace(path)

    def append_jsonl(self, path: Path, data: dict) -> None:
        """Append to JSONL file."""
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a") as f:
                f.write(json.dumps(data, default=str) + "\n")


class AccountFiles:
    """Reads and writes the per-account record files."""

    def __init__(self, base_path: Path, write_queue: WriteQueue):
        self._dir = base_path / "accounts"
        self._writes = write_queue

    def path(self, account_id: str) -> Path:
        return self._dir / f"{_safe_name(account_id)}.json"

    def read(self, account_id: str) -> Optional[dict]:
        path = self.path(account_id)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt account file for %s: %s", account_id, e)
            return None

    def write(self, account_id: str, record: dict) -> None:
        self._writes.write_json(self.path(account_id), record)

    def ids(self) -> list[str]:
        if not self._dir.exists():
            return []
        ids = []
        for path in sorted(self._dir.glob("*.json")):
            record = self.read(path.stem)
            if record and "account" in record:
                ids.append(record["account"]["id"])
        return ids


class JsonAccountRepository(AccountRepository):
    """JSON file implementation of account repository."""

    def __init__(self, files: AccountFiles, lock: threading.RLock):
        self._files = files
        self._lock = lock

    def get(self, id: str) -> Optional[ProfessionalAccount]:
        record = self._files.read(id)
        if not record or "account" not in record:
            return None
        return ProfessionalAccount.model_validate(record["account"])

    def save(self, entity: ProfessionalAccount) -> None:
        with self._lock:
            record = self._files.read(entity.id) or {"profiles": [], "documents": []}
            entity.touch()
            record["account"] = entity.model_dump(mode="json")
            self._files.write(entity.id, record)

    def list(self) -> list[ProfessionalAccount]:
        accounts = [self.get(id) for id in self._files.ids()]
        return [a for a in accounts if a is not None]

    def exists(self, id: str) -> bool:
        return self._files.path(id).exists()


class JsonProfileRepository(ProfileRepository):
    """Profile versions live in the owning account's record file."""

    def __init__(self, files: AccountFiles, lock: threading.RLock):
        self._files = files
        self._lock = lock

    def history(self, account_id: str) -> list[Profile]:
        record = self._files.read(account_id) or {}
        return [parse_profile(p) for p in record.get("profiles", [])]

    def get_for_account(self, account_id: str) -> Optional[Profile]:
        versions = self.history(account_id)
        return versions[-1] if versions else None

    def save(self, profile: Profile) -> None:
        with self._lock:
            record = self._files.read(profile.account_id)
            if record is None:
                raise AccountNotFoundError(profile.account_id)
            record["profiles"] = _merge_profile(record.get("profiles", []), profile)
            self._files.write(profile.account_id, record)

    def list(self) -> list[Profile]:
        profiles = [self.get_for_account(id) for id in self._files.ids()]
        return [p for p in profiles if p is not None]


def _merge_profile(versions: list[dict], profile: Profile) -> list[dict]:
    profile.touch()
    data = profile.model_dump(mode="json")
    if versions and versions[-1].get("version") == profile.version:
        return versions[:-1] + [data]
    if versions and profile.version < versions[-1].get("version", 0):
        raise ValueError(
            f"Profile version {profile.version} for {profile.account_id} "
            f"is older than current version {versions[-1].get('version')}"
        )
    return versions + [data]


def _merge_document(documents: list[dict], document: VerificationDocument) -> list[dict]:
    data = document.model_dump(mode="json")
    merged = [data if d.get("id") == document.id else d for d in documents]
    if not any(d.get("id") == document.id for d in documents):
        merged.append(data)
    return merged


class JsonDocumentRepository(DocumentRepository):
    """Documents live in the owning account's record file."""

    def __init__(self, files: AccountFiles, lock: threading.RLock):
        self._files = files
        self._lock = lock

    def get_for_account(self, account_id: str) -> list[VerificationDocument]:
        record = self._files.read(account_id) or {}
        return [VerificationDocument.model_validate(d) for d in record.get("documents", [])]

    def append(self, document: VerificationDocument) -> None:
        self.save(document)

    def save(self, document: VerificationDocument) -> None:
        with self._lock:
            record = self._files.read(document.account_id)
            if record is None:
                raise AccountNotFoundError(document.account_id)
            record["documents"] = _merge_document(record.get("documents", []), document)
            self._files.write(document.account_id, record)

    def list(self) -> list[VerificationDocument]:
        return [d for id in self._files.ids() for d in self.get_for_account(id)]


class JsonDecisionRepository(DecisionRepository):
    """
    JSONL implementation of the decision log.

    Sequence numbers are assigned under an exclusive lock on
    decisions.jsonl.lock, re-reading the log each time, so several
    processes sharing a data directory never hand out the same number.
    """

    def __init__(self, base_path: Path, write_queue: WriteQueue, lock: threading.RLock):
        self._path = base_path / "decisions.jsonl"
        self._lock_path = base_path / "decisions.jsonl.lock"
        self._writes = write_queue
        self._lock = lock

    @contextmanager
    def _file_lock(self):
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def append(self, decision: ReviewDecision) -> ReviewDecision:
        with self._lock, self._file_lock():
            current = max((d.sequence for d in self.iterate()), default=0)
            stored = decision.with_sequence(current + 1)
            self._writes.append_jsonl(self._path, stored.model_dump(mode="json"))
            return stored

    def get_for_account(self, account_id: str) -> list[ReviewDecision]:
        return [d for d in self.iterate() if d.account_id == account_id]

    def iterate(self) -> Iterator[ReviewDecision]:
        if not self._path.exists():
            return

        decisions = []
        with open(self._path) as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    decisions.append(ReviewDecision.model_validate(json.loads(line)))
                except ValueError as e:
                    logger.warning("Corrupt line %d in %s: %s", line_num, self._path, e)
        decisions.sort(key=lambda d: d.sequence)
        yield from decisions


class JsonNotificationRepository(NotificationRepository):
    """One JSON list per user."""

    def __init__(self, base_path: Path, write_queue: WriteQueue, lock: threading.RLock):
        self._dir = base_path / "notifications"
        self._writes = write_queue
        self._lock = lock

    def _path(self, user_id: str) -> Path:
        return self._dir / f"{_safe_name(user_id)}.json"

    def _read(self, user_id: str) -> list[dict]:
        path = self._path(user_id)
        if not path.exists():
            return []
        try:
            with open(path) as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt notification feed for %s: %s", user_id, e)
            return []

    def append(self, notification: Notification) -> None:
        with self._lock:
            rows = self._read(notification.user_id)
            rows.append(notification.model_dump(mode="json"))
            self._writes.write_json(self._path(notification.user_id), rows)

    def get(self, id: str) -> Optional[Notification]:
        if not self._dir.exists():
            return None
        for path in self._dir.glob("*.json"):
            for row in self._read(path.stem):
                if row.get("id") == id:
                    return Notification.model_validate(row)
        return None

    def save(self, notification: Notification) -> None:
        with self._lock:
            rows = self._read(notification.user_id)
            data = notification.model_dump(mode="json")
            rows = [data if r.get("id") == notification.id else r for r in rows]
            self._writes.write_json(self._path(notification.user_id), rows)

    def get_for_user(self, user_id: str) -> list[Notification]:
        rows = [Notification.model_validate(r) for r in self._read(user_id)]
        rows.reverse()
        return sorted(rows, key=lambda n: n.created_at, reverse=True)


class JsonRepository(Repository):
    """JSON file backend implementation."""

    def __init__(self, base_path: Path):
        self._base_path = Path(base_path)
        self._lock = threading.RLock()
        writes = WriteQueue()
        self._files = AccountFiles(self._base_path, writes)
        self._accounts = JsonAccountRepository(self._files, self._lock)
        self._profiles = JsonProfileRepository(self._files, self._lock)
        self._documents = JsonDocumentRepository(self._files, self._lock)
        self._decisions = JsonDecisionRepository(self._base_path, writes, self._lock)
        self._notifications = JsonNotificationRepository(self._base_path, writes, self._lock)

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

    @staticmethod
    def _to_record(record: dict) -> AccountRecord:
        profiles = record.get("profiles", [])
        return AccountRecord(
            account=ProfessionalAccount.model_validate(record["account"]),
            profile=parse_profile(profiles[-1]) if profiles else None,
            documents=[VerificationDocument.model_validate(d) for d in record.get("documents", [])],
        )

    def load(self, account_id: str) -> Optional[AccountRecord]:
        # One file read, so account and profile always come from the same write
        record = self._files.read(account_id)
        if not record or "account" not in record:
            return None
        return self._to_record(record)

    def load_all(self) -> list[AccountRecord]:
        records = [self.load(id) for id in self._files.ids()]
        return [r for r in records if r is not None]

    def commit_submission(self, account_id: str, profile: Profile,
                          documents: list[VerificationDocument]) -> AccountRecord:
        with self._lock:
            record = self._files.read(account_id)
            if record is None or "account" not in record:
                raise AccountNotFoundError(account_id)

            record["profiles"] = _merge_profile(record.get("profiles", []), profile)
            for doc in documents:
                record["documents"] = _merge_document(record.get("documents", []), doc)
            account = ProfessionalAccount.model_validate(record["account"])
            account.professional_status = profile.status
            account.touch()
            record["account"] = account.model_dump(mode="json")

            self._files.write(account_id, record)
            return self._to_record(record)

    def commit_status(self, account_id: str, status: ProfessionalStatus,
                      decision: Optional[ReviewDecision] = None,
                      documents: Optional[list[VerificationDocument]] = None) -> tuple[AccountRecord, Optional[ReviewDecision]]:
        with self._lock:
            record = self._files.read(account_id)
            if record is None or "account" not in record:
                raise AccountNotFoundError(account_id)

            # Log first: the decision log is what reconcile trusts
            stored = self._decisions.append(decision) if decision is not None else None

            profiles = record.get("profiles", [])
            if profiles:
                profile = parse_profile(profiles[-1])
                profile.status = status
                record["profiles"] = _merge_profile(profiles, profile)
            for doc in documents or []:
                record["documents"] = _merge_document(record.get("documents", []), doc)
            account = ProfessionalAccount.model_validate(record["account"])
            account.professional_status = status
            account.touch()
            record["account"] = account.model_dump(mode="json")

            self._files.write(account_id, record)
            return self._to_record(record), stored
