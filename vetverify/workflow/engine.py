"""
VerificationEngine - owns every status transition of a professional account.

Each operation loads the account record, checks the transition, and
writes account status, profile status, documents and the decision record
through one repository commit. Notifications go out after the commit and
never fail the operation.

Decisions on the same account are serialised with a per-account lock;
different accounts proceed in parallel (batch decisions use a thread pool).
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..config import Settings
from ..errors import (
    VerificationError,
    ValidationError,
    AccountNotFoundError,
    InvalidTransitionError,
    PartialBatchFailure,
)
from ..models import (
    ProfessionalAccount,
    ProfessionalStatus,
    VerificationStatus,
    VerificationDocument,
    ReviewDecision,
    DecisionDetails,
    Notification,
    NotificationType,
    NotificationPreferences,
    UserRole,
    DETAILS_BY_ROLE,
    build_profile,
)
from ..notifications import NotificationSink
from ..repositories import Repository, AccountRecord
from ..repositories.base import Profile
from ..validation import validate_details, check_documents, coerce_uploads, field_errors_from
from .state import WorkflowState, EDITABLE_STATES, check_transition, state_of

logger = logging.getLogger(__name__)

# Fields a professional may never set through self-edit
LOCKED_FIELDS = {
    "id", "account_id", "role", "status", "professional_status",
    "version", "submitted_at", "decision_baseline", "created_at", "updated_at",
}

DECISION_STATUSES = (ProfessionalStatus.APPROVED, ProfessionalStatus.REJECTED)


@dataclass
class BatchResult:
    """Outcome of a batch decision. Failures never abort the batch."""
    succeeded: set[str] = field(default_factory=set)
    failed: dict[str, Exception] = field(default_factory=dict)
    decisions: dict[str, ReviewDecision] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PartialBatchFailure(self.succeeded, self.failed)

    def to_dict(self) -> dict:
        """Export for API responses."""
        return {
            "succeeded": sorted(self.succeeded),
            "failed": {
                account_id: (e.to_dict() if isinstance(e, VerificationError) else {"message": str(e)})
                for account_id, e in self.failed.items()
            },
        }


@dataclass
class ReconcileReport:
    checked: int = 0
    repaired: dict[str, tuple[str, str]] = field(default_factory=dict)  # id -> (was, now)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "repaired": {k: {"was": was, "now": now} for k, (was, now) in self.repaired.items()},
        }


class AccountLocks:
    """One lock per account id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, account_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, account_id: str):
        lock = self.get(account_id)
        with lock:
            yield


def _as_status(decision: Union[str, ProfessionalStatus]) -> ProfessionalStatus:
    try:
        return ProfessionalStatus(decision)
    except ValueError:
        raise ValidationError.for_fields({
            "decision": f"'{decision}' is not a status; use approved or rejected",
        }) from None


def _parse_preferences(preferences) -> NotificationPreferences:
    if isinstance(preferences, NotificationPreferences):
        preferences = preferences.model_dump()
    try:
        return NotificationPreferences.model_validate(preferences)
    except PydanticValidationError as e:
        raise ValidationError.for_fields(field_errors_from(e)) from e


def _as_details(details) -> DecisionDetails:
    if details is None:
        return DecisionDetails()
    if isinstance(details, DecisionDetails):
        return details
    try:
        return DecisionDetails.model_validate(details)
    except PydanticValidationError as e:
        raise ValidationError.for_fields(field_errors_from(e)) from e


def _status_message(status: ProfessionalStatus, details: DecisionDetails, reinstated: bool = False) -> str:
    if status is ProfessionalStatus.APPROVED:
        if reinstated:
            return "Your account has been reinstated. You can accept bookings again."
        return "Congratulations! Your profile has been verified and approved."
    if status is ProfessionalStatus.REJECTED:
        message = f"Your profile verification was not approved. Reason: {details.reason}."
    else:
        message = "Your account has been suspended by an administrator."
        if details.reason:
            message += f" Reason: {details.reason}."
    if details.comments:
        message += f" Comments: {details.comments}"
    return message


_STATUS_NOTIFICATION = {
    ProfessionalStatus.APPROVED: NotificationType.STATUS_APPROVED,
    ProfessionalStatus.REJECTED: NotificationType.STATUS_REJECTED,
    ProfessionalStatus.SUSPENDED: NotificationType.STATUS_SUSPENDED,
}

_DOCUMENT_VERDICT = {
    ProfessionalStatus.APPROVED: VerificationStatus.APPROVED,
    ProfessionalStatus.REJECTED: VerificationStatus.REJECTED,
}


class VerificationEngine:
    """
    The only writer of professional_status.

    Usage:
        engine = VerificationEngine(repo, sink, settings)
        engine.submit_profile("acct-1", vet_data, uploads)
        engine.record_decision("acct-1", "approved", admin_id="admin-1")
    """

    def __init__(self, repository: Repository, sink: NotificationSink,
                 settings: Optional[Settings] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self.sink = sink
        self.settings = settings or Settings()
        self.clock = clock or datetime.now
        self._locks = AccountLocks()

    # -- Accounts ----------------------------------------------------------

    def register_account(self, account_id: str, email: str, role: Union[str, UserRole],
                         preferences: Optional[Union[dict, NotificationPreferences]] = None) -> ProfessionalAccount:
        """Record an account created by the identity provider."""
        errors = {}
        if not account_id or not str(account_id).strip():
            errors["id"] = "this field is required"
        if not email or "@" not in email:
            errors["email"] = "must be an email address"
        try:
            role = UserRole(role)
        except ValueError:
            errors["role"] = "must be one of: " + ", ".join(r.value for r in UserRole)
        if errors:
            raise ValidationError.for_fields(errors)
        parsed = _parse_preferences(preferences) if preferences is not None else NotificationPreferences()

        with self._locks.hold(account_id):
            if self.repository.accounts.exists(account_id):
                raise ValidationError.for_fields({"id": f"account '{account_id}' already exists"})
            account = ProfessionalAccount(id=account_id, email=email, role=role,
                                         notification_preferences=parsed)
            self.repository.accounts.save(account)

        logger.info("[ACCOUNT] Registered %s (%s)", account_id, role.value)
        return account

    def update_preferences(self, account_id: str,
                           preferences: Union[dict, NotificationPreferences]) -> ProfessionalAccount:
        parsed = _parse_preferences(preferences)
        with self._locks.hold(account_id):
            account = self.repository.accounts.get(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            account.notification_preferences = parsed
            self.repository.accounts.save(account)
        return account

    def get_record(self, account_id: str) -> AccountRecord:
        record = self.repository.load(account_id)
        if record is None:
            raise AccountNotFoundError(account_id)
        return record

    def state(self, account_id: str) -> WorkflowState:
        return state_of(self.get_record(account_id))

    # -- Professional actions ----------------------------------------------

    def submit_profile(self, account_id: str, data: dict, documents: Iterable) -> Profile:
        """
        First submission, or resubmission after a rejection.

        Validates the role-specific fields and the uploads, then stores the
        next profile version, its documents and the pending status together.
        Admins are told a new applicant is waiting.
        """
        with self._locks.hold(account_id):
            record = self.get_record(account_id)
            account = record.account
            if not account.is_professional:
                raise ValidationError(
                    f"Accounts with role '{account.role.value}' do not go through verification"
                )
            check_transition(record, WorkflowState.PENDING,
                             detail=_submit_block_reason(state_of(record)))

            details = validate_details(account.role, data)
            uploads = check_documents(coerce_uploads(documents), self.settings.requirement_for(account.role))

            previous = record.profile
            latest = self.repository.decisions.latest(account_id)
            extra = {"id": previous.id} if previous is not None else {}
            profile = build_profile(
                account.role, account_id, details,
                status=ProfessionalStatus.PENDING,
                version=previous.version + 1 if previous else 1,
                submitted_at=self.clock(),
                decision_baseline=latest.sequence if latest else 0,
                **extra,
            )
            docs = [VerificationDocument.from_upload(account_id, u) for u in uploads]
            committed = self.repository.commit_submission(account_id, profile, docs)

        logger.info("[SUBMIT] %s submitted profile v%d with %d document(s)",
                    account_id, profile.version, len(docs))
        self._notify_admins(committed)
        return committed.profile

    def update_profile(self, account_id: str, changes: dict) -> Profile:
        """Self-edit. Status is untouched; the edit is stored as a new version."""
        if not isinstance(changes, dict):
            raise ValidationError("Profile changes must be an object of field values")
        locked = sorted(k for k in changes if k in LOCKED_FIELDS)
        if locked:
            raise ValidationError.for_fields({k: "cannot be edited" for k in locked})

        with self._locks.hold(account_id):
            record = self.get_record(account_id)
            current = state_of(record)
            if current not in EDITABLE_STATES:
                raise InvalidTransitionError(
                    account_id, current.value, current.value, action="editing the profile",
                    detail="submit a profile first" if current is WorkflowState.UNSUBMITTED else None,
                )

            profile = record.profile
            details_cls = DETAILS_BY_ROLE[profile.role]
            merged = profile.model_dump(include=set(details_cls.model_fields))
            merged.update(changes)
            details = validate_details(profile.role, merged)

            if current is WorkflowState.APPROVED and details.license_number != profile.license_number:
                raise ValidationError.for_fields({
                    "license_number": "cannot be changed once the profile is approved",
                })

            updated = build_profile(
                profile.role, account_id, details,
                id=profile.id,
                status=profile.status,
                version=profile.version + 1,
                submitted_at=profile.submitted_at,
                decision_baseline=profile.decision_baseline,
            )
            committed = self.repository.commit_submission(account_id, updated, [])

        logger.info("[EDIT] %s updated profile to v%d (%s)", account_id, updated.version,
                    ", ".join(sorted(changes)) or "no fields")
        return committed.profile

    # -- Admin actions -----------------------------------------------------

    def record_decision(self, account_id: str, decision: Union[str, ProfessionalStatus],
                        details=None, *, admin_id: Optional[str] = None) -> ReviewDecision:
        """Approve or reject a pending account."""
        status, details = self._check_decision(decision, details)
        return self._apply(
            account_id, status, details, admin_id,
            required=WorkflowState.PENDING,
            message=_status_message(status, details),
        )

    def batch_record_decision(self, account_ids: Iterable[str], decision: Union[str, ProfessionalStatus],
                              details=None, *, admin_id: Optional[str] = None) -> BatchResult:
        """
        Apply the same decision to many accounts.

        Each account succeeds or fails on its own. A bad decision value or
        a rejection without a reason fails the whole call up front.
        """
        status, details = self._check_decision(decision, details)
        ids = list(dict.fromkeys(account_ids))
        result = BatchResult()
        if not ids:
            return result

        workers = min(self.settings.batch_workers, len(ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="decision") as executor:
            futures = {
                executor.submit(self.record_decision, account_id, status, details, admin_id=admin_id): account_id
                for account_id in ids
            }
            for future in as_completed(futures):
                account_id = futures[future]
                try:
                    result.decisions[account_id] = future.result()
                    result.succeeded.add(account_id)
                except VerificationError as e:
                    result.failed[account_id] = e
                except Exception as e:
                    logger.exception("[BATCH] Unexpected error deciding %s", account_id)
                    result.failed[account_id] = e

        logger.info("[BATCH] %s: %d succeeded, %d failed", status.value,
                    len(result.succeeded), len(result.failed))
        return result

    def suspend(self, account_id: str, admin_id: Optional[str] = None,
                comments: Optional[str] = None, reason: Optional[str] = None) -> ReviewDecision:
        details = DecisionDetails(reason=reason, comments=comments)
        return self._apply(
            account_id, ProfessionalStatus.SUSPENDED, details, admin_id,
            required=WorkflowState.APPROVED,
            message=_status_message(ProfessionalStatus.SUSPENDED, details),
        )

    def reinstate(self, account_id: str, admin_id: Optional[str] = None,
                  comments: Optional[str] = None) -> ReviewDecision:
        details = DecisionDetails(comments=comments)
        return self._apply(
            account_id, ProfessionalStatus.APPROVED, details, admin_id,
            required=WorkflowState.SUSPENDED,
            message=_status_message(ProfessionalStatus.APPROVED, details, reinstated=True),
        )

    def history(self, account_id: str) -> list[ReviewDecision]:
        """Audit trail for the account, oldest first."""
        if not self.repository.accounts.exists(account_id):
            raise AccountNotFoundError(account_id)
        return self.repository.decisions.get_for_account(account_id)

    def _check_decision(self, decision, details) -> tuple[ProfessionalStatus, DecisionDetails]:
        status = _as_status(decision)
        if status not in DECISION_STATUSES:
            raise ValidationError.for_fields({
                "decision": f"'{status.value}' is not a review decision; use approved or rejected",
            })
        details = _as_details(details)
        if status is ProfessionalStatus.REJECTED:
            if not details.reason:
                raise ValidationError.for_fields({"reason": "a reason is required to reject an application"})
            if not self.settings.is_known_reason(details.reason):
                raise ValidationError.for_fields({
                    "reason": "must be one of: " + ", ".join(self.settings.rejection_reasons),
                })
        return status, details

    def _apply(self, account_id: str, status: ProfessionalStatus, details: DecisionDetails,
               admin_id: Optional[str], required: WorkflowState, message: str) -> ReviewDecision:
        with self._locks.hold(account_id):
            record = self.get_record(account_id)
            previous = check_transition(record, WorkflowState.from_status(status), required=required)

            now = self.clock()
            verdict = _DOCUMENT_VERDICT.get(status)
            documents = []
            if verdict is not None:
                for doc in record.documents:
                    if doc.verification_status is VerificationStatus.PENDING:
                        doc.mark(verdict, admin_id, now, reason=details.reason)
                        documents.append(doc)

            decision = ReviewDecision(
                account_id=account_id,
                status=status,
                reason=details.reason,
                comments=details.comments,
                admin_id=admin_id,
                decided_at=now,
            )
            _, stored = self.repository.commit_status(account_id, status, decision, documents)

        logger.info("[DECISION] %s: %s -> %s by %s (#%d)", account_id, previous.value,
                    status.value, admin_id or "system", stored.sequence)
        self._notify(account_id, message, _STATUS_NOTIFICATION[status], link="/profile")
        return stored

    # -- Maintenance -------------------------------------------------------

    def send_document_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Remind professionals who never submitted, and owners of documents
        expiring within the configured window. Returns reminders sent.
        """
        now = now or self.clock()
        window = self.settings.reminder_window_days
        sent = 0

        for record in self.repository.load_all():
            account = record.account
            if not account.is_professional:
                continue
            current = state_of(record)
            if current is WorkflowState.SUSPENDED:
                continue

            if current is WorkflowState.UNSUBMITTED:
                message = ("Complete your profile and upload your verification documents "
                           "to get verified.")
            else:
                expiring = [
                    d for d in record.documents
                    if d.verification_status is not VerificationStatus.REJECTED
                    and d.expires_within(now, window)
                ]
                if not expiring:
                    continue
                labels = ", ".join(sorted({d.document_type.label for d in expiring}))
                message = (f"Your {labels} expire(s) within {window} days or already expired. "
                           "Upload renewed copies to stay verified.")

            if self._notify(account.id, message, NotificationType.DOCUMENT_REMINDER, link="/profile"):
                sent += 1

        logger.info("[REMIND] Sent %d document reminder(s)", sent)
        return sent

    def reconcile(self) -> ReconcileReport:
        """
        Repair accounts whose stored status does not match the decision log.

        The expected status is the latest decision made after the current
        profile version was submitted, or pending if there is none.
        """
        report = ReconcileReport()
        for summary in self.repository.load_all():
            account_id = summary.account.id
            with self._locks.hold(account_id):
                record = self.repository.load(account_id)
                if record is None or record.profile is None:
                    continue
                report.checked += 1

                latest = self.repository.decisions.latest(account_id)
                expected = ProfessionalStatus.PENDING
                if latest is not None and latest.sequence > record.profile.decision_baseline:
                    expected = latest.status

                was = record.account.professional_status
                if was is expected and record.profile.status is expected:
                    continue

                self.repository.commit_status(account_id, expected)
                report.repaired[account_id] = (was.value, expected.value)
                logger.warning("[RECONCILE] %s: account=%s profile=%s, repaired to %s",
                               account_id, was.value, record.profile.status.value, expected.value)
        return report

    # -- Notifications -----------------------------------------------------

    def _notify(self, account_id: str, message: str, type: NotificationType,
                link: Optional[str] = None) -> Optional[Notification]:
        try:
            return self.sink.notify(account_id, message, type, link=link)
        except Exception as e:
            logger.warning("[NOTIFY] %s to %s failed: %s", type.value, account_id, e)
            return None

    def _notify_admins(self, record: AccountRecord) -> None:
        message = (f"{record.display_name} ({record.account.role.value}) "
                   "submitted a profile for verification.")
        for admin in self.repository.accounts.list():
            if not admin.is_admin:
                continue
            prefs = admin.notification_preferences
            if prefs.in_app.allows(NotificationType.NEW_APPLICANT) or prefs.email.allows(NotificationType.NEW_APPLICANT):
                self._notify(admin.id, message, NotificationType.NEW_APPLICANT,
                             link=f"/admin/verifications/{record.account.id}")


def _submit_block_reason(current: WorkflowState) -> Optional[str]:
    if current is WorkflowState.SUSPENDED:
        return "suspended accounts cannot submit a profile"
    if current in (WorkflowState.PENDING, WorkflowState.APPROVED):
        return "a profile has already been submitted"
    return None
