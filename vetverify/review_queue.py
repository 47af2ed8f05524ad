"""
Review queue - read-only view of professionals awaiting verification.

Everything here is derived from the repository on each call; nothing is
cached, so the queue can never disagree with the engine. The only state
kept is the admin's selection, which lives in the caller's session.
"""

import csv
import io
import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .config import Settings
from .errors import ValidationError
from .models import ProfessionalStatus, UserRole, VerificationDocument, ProfessionalAccount
from .repositories import Repository, AccountRecord
from .repositories.base import Profile

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["account_id", "email", "role", "name", "license_number", "status"]


@dataclass
class QueueFilter:
    """Search text and role filter. role None or "all" means every role."""
    search_text: str = ""
    role: Optional[Union[str, UserRole]] = None

    def __post_init__(self):
        self.search_text = (self.search_text or "").strip()
        if self.role in (None, "", "all"):
            self.role = None
            return
        try:
            self.role = UserRole(self.role)
        except ValueError:
            raise ValidationError.for_fields({
                "role": "must be one of: all, veterinarian, vendor",
            }) from None

    def matches(self, entry: "QueueEntry") -> bool:
        if self.role is not None and entry.account.role is not self.role:
            return False
        if not self.search_text:
            return True
        needle = self.search_text.lower()
        return needle in entry.name.lower() or needle in entry.account.email.lower()


@dataclass
class QueueEntry:
    account: ProfessionalAccount
    profile: Profile
    documents: list[VerificationDocument] = field(default_factory=list)

    @property
    def account_id(self) -> str:
        return self.account.id

    @property
    def name(self) -> str:
        return self.profile.display_name

    def to_dict(self) -> dict:
        """Export for API responses."""
        return {
            "account": self.account.model_dump(mode="json"),
            "profile": self.profile.model_dump(mode="json"),
            "documents": [d.model_dump(mode="json") for d in self.documents],
        }


@dataclass
class QueuePage:
    items: list[QueueEntry]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.total_count else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def ids(self) -> list[str]:
        return [e.account_id for e in self.items]

    def to_dict(self) -> dict:
        return {
            "items": [e.to_dict() for e in self.items],
            "total_count": self.total_count,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


class ReviewQueue:
    """Projects pending accounts out of the repository."""

    def __init__(self, repository: Repository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or Settings()

    def pending(self) -> list[QueueEntry]:
        """Pending accounts with a profile, oldest submission first."""
        entries = [
            QueueEntry(account=r.account, profile=r.profile, documents=r.documents)
            for r in self.repository.load_all()
            if _is_pending(r)
        ]
        entries.sort(key=lambda e: (e.profile.submitted_at, e.account_id))
        return entries

    def filtered(self, queue_filter: Optional[QueueFilter] = None) -> list[QueueEntry]:
        queue_filter = queue_filter or QueueFilter()
        return [e for e in self.pending() if queue_filter.matches(e)]

    def result_ids(self, queue_filter: Optional[QueueFilter] = None) -> set[str]:
        return {e.account_id for e in self.filtered(queue_filter)}

    # -- Export ------------------------------------------------------------

    def approved_rows(self) -> list[dict]:
        rows = []
        for record in self.repository.load_all():
            if record.account.professional_status is not ProfessionalStatus.APPROVED:
                continue
            if record.profile is None:
                continue
            rows.append({
                "account_id": record.account.id,
                "email": record.account.email,
                "role": record.account.role.value,
                "name": record.display_name,
                "license_number": record.profile.license_number,
                "status": record.account.professional_status.value,
            })
        rows.sort(key=lambda r: r["account_id"])
        return rows

    def export_approved(self) -> str:
        """CSV snapshot of approved professionals as of now."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(self.approved_rows())
        return buffer.getvalue()

    def write_approved_export(self, path: Path) -> int:
        """Write the CSV snapshot to path. Returns the number of rows."""
        path = Path(path)
        rows = self.approved_rows()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
        logger.info("[EXPORT] Wrote %d approved professional(s) to %s", len(rows), path)
        return len(rows)

    # Defined last: the name shadows the builtin for annotations below it
    def list(self, queue_filter: Optional[QueueFilter] = None, page: int = 1,
             page_size: Optional[int] = None) -> QueuePage:
        page_size = self.settings.page_size if page_size is None else page_size
        errors = {}
        if page < 1:
            errors["page"] = "must be 1 or more"
        if page_size < 1:
            errors["page_size"] = "must be 1 or more"
        if errors:
            raise ValidationError.for_fields(errors)

        entries = self.filtered(queue_filter)
        start = (page - 1) * page_size
        return QueuePage(
            items=entries[start:start + page_size],
            total_count=len(entries),
            page=page,
            page_size=page_size,
        )


def _is_pending(record: AccountRecord) -> bool:
    return record.profile is not None and record.account.professional_status is ProfessionalStatus.PENDING


class ReviewSelection:
    """
    An admin's multi-select over the queue.

    Selections survive filter changes; only the ids in the current result
    set are actionable.
    """

    NONE = "none"
    SOME = "some"
    ALL = "all"

    def __init__(self, queue: ReviewQueue, selected: Optional[set[str]] = None):
        self.queue = queue
        self._lock = threading.Lock()
        self._selected: set[str] = set(selected or ())

    @property
    def selected(self) -> set[str]:
        with self._lock:
            return set(self._selected)

    def select_one(self, account_id: str) -> None:
        with self._lock:
            self._selected.add(account_id)

    def deselect_one(self, account_id: str) -> None:
        with self._lock:
            self._selected.discard(account_id)

    def toggle(self, account_id: str) -> bool:
        """Returns True if the id is now selected."""
        with self._lock:
            if account_id in self._selected:
                self._selected.discard(account_id)
                return False
            self._selected.add(account_id)
            return True

    def select_all(self, queue_filter: Optional[QueueFilter] = None) -> set[str]:
        """Select every id in the filtered view, across all pages."""
        ids = self.queue.result_ids(queue_filter)
        with self._lock:
            self._selected |= ids
        return ids

    def deselect_all(self) -> None:
        with self._lock:
            self._selected.clear()

    def actionable(self, queue_filter: Optional[QueueFilter] = None) -> set[str]:
        return self.selected & self.queue.result_ids(queue_filter)

    def state(self, queue_filter: Optional[QueueFilter] = None) -> str:
        """Header checkbox state for the current view."""
        results = self.queue.result_ids(queue_filter)
        chosen = self.selected & results
        if not chosen:
            return self.NONE
        if chosen == results:
            return self.ALL
        return self.SOME

    def discard(self, account_ids) -> None:
        with self._lock:
            self._selected -= set(account_ids)


def decide_selection(engine, selection: ReviewSelection, queue_filter: Optional[QueueFilter],
                     decision, details=None, *, admin_id: Optional[str] = None):
    """
    Batch-decide the actionable part of a selection.

    Succeeded ids leave the selection; failed ids stay selected so the
    admin can see them. Returns the engine's BatchResult.
    """
    ids = sorted(selection.actionable(queue_filter))
    result = engine.batch_record_decision(ids, decision, details, admin_id=admin_id)
    selection.discard(result.succeeded)
    return result
