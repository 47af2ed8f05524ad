"""
Error taxonomy for the verification workflow.

Every error carries a message that can be shown to a user as-is.
"""

from typing import Iterable, Optional


class VerificationError(Exception):
    """Base for all workflow errors."""

    code = "verification_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Export for API responses."""
        return {"error": self.code, "message": self.message}


class ValidationError(VerificationError):
    """Bad or missing input. The caller fixes it and resubmits."""

    code = "validation_error"

    def __init__(self, message: str, field_errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = dict(field_errors or {})

    @classmethod
    def for_fields(cls, field_errors: dict[str, str]) -> "ValidationError":
        lines = [f"{field}: {problem}" for field, problem in field_errors.items()]
        return cls("Please correct the following: " + "; ".join(lines), field_errors)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field_errors:
            data["fields"] = self.field_errors
        return data


class DocumentsIncompleteError(ValidationError):
    """Submission attempted before the required uploads finished."""

    code = "documents_incomplete"

    def __init__(self, missing_types: Iterable[str] = (), failed_uploads: Optional[dict[str, str]] = None,
                 pending_uploads: Iterable[str] = ()):
        self.missing_types = sorted(missing_types)
        self.failed_uploads = dict(failed_uploads or {})
        self.pending_uploads = sorted(pending_uploads)

        parts = []
        if self.pending_uploads:
            parts.append("still uploading: " + ", ".join(self.pending_uploads))
        if self.failed_uploads:
            parts.append("failed uploads: " + ", ".join(
                f"{name} ({error})" for name, error in self.failed_uploads.items()
            ))
        if self.missing_types:
            parts.append("missing documents: " + ", ".join(
                t.replace("_", " ") for t in self.missing_types
            ))
        message = "Your documents are not ready for submission"
        if parts:
            message += " - " + "; ".join(parts)
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["missing_types"] = self.missing_types
        data["failed_uploads"] = self.failed_uploads
        data["pending_uploads"] = self.pending_uploads
        return data


class AccountNotFoundError(VerificationError):

    code = "account_not_found"

    def __init__(self, account_id: str):
        super().__init__(f"No account exists with id '{account_id}'")
        self.account_id = account_id


class InvalidTransitionError(VerificationError):
    """The account is not in a state that allows the requested change."""

    code = "invalid_transition"

    def __init__(self, account_id: str, current: str, target: str, detail: Optional[str] = None,
                 action: Optional[str] = None):
        if action:
            message = f"Account '{account_id}' is {current}; {action} is not allowed"
        else:
            message = f"Account '{account_id}' is {current} and cannot move to {target}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.account_id = account_id
        self.current = current
        self.target = target

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"account_id": self.account_id, "current": self.current, "target": self.target})
        return data


class PartialBatchFailure(VerificationError):
    """Some accounts in a batch failed; the rest were committed."""

    code = "partial_batch_failure"

    def __init__(self, succeeded: set, failed: dict):
        self.succeeded = set(succeeded)
        self.failed = dict(failed)
        super().__init__(
            f"{len(self.succeeded)} succeeded, {len(self.failed)} failed: "
            + "; ".join(f"{account_id}: {error}" for account_id, error in sorted(self.failed.items()))
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["succeeded"] = sorted(self.succeeded)
        data["failed"] = {
            account_id: (error.to_dict() if isinstance(error, VerificationError) else {"message": str(error)})
            for account_id, error in self.failed.items()
        }
        return data


class NotificationNotFoundError(VerificationError):

    code = "notification_not_found"

    def __init__(self, notification_id: str):
        super().__init__(f"No notification exists with id '{notification_id}'")
        self.notification_id = notification_id
