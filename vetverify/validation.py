"""
Submission checks shared by onboarding and self-edit.

Turns pydantic errors into field -> message pairs a user can act on.
"""

from typing import Iterable, Optional
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .config import DocumentRequirement
from .errors import ValidationError, DocumentsIncompleteError
from .models import UserRole, DETAILS_BY_ROLE, UploadedDocument

_MESSAGES = {
    "missing": "this field is required",
    "string_too_short": "must be at least {min_length} characters",
    "too_short": "must have at least {min_length} item(s)",
    "greater_than_equal": "must be {ge} or more",
    "int_parsing": "must be a whole number",
    "float_parsing": "must be a number",
    "enum": "must be one of: {expected}",
    "bool_parsing": "must be true or false",
}


def _field_path(loc: tuple) -> str:
    parts = []
    for item in loc:
        if isinstance(item, int):
            parts[-1] = f"{parts[-1]}[{item}]" if parts else f"[{item}]"
        else:
            parts.append(str(item))
    return ".".join(parts) or "__root__"


def _message(error: dict) -> str:
    template = _MESSAGES.get(error["type"])
    if template:
        try:
            return template.format(**(error.get("ctx") or {}))
        except KeyError:
            pass
    msg = error.get("msg", "is invalid")
    # Custom validators surface as "Value error, <our text>"
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return msg


def field_errors_from(exc: PydanticValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        errors.setdefault(_field_path(error["loc"]), _message(error))
    return errors


def validate_details(role: UserRole, data: dict) -> BaseModel:
    """Validate role-specific profile data. Raises ValidationError."""
    details_cls = DETAILS_BY_ROLE.get(role)
    if details_cls is None:
        raise ValidationError(f"Accounts with role '{role.value}' do not have a professional profile")
    if not isinstance(data, dict):
        raise ValidationError("Profile data must be an object of field values")

    try:
        return details_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.for_fields(field_errors_from(e)) from e


def check_documents(documents: Iterable[UploadedDocument], requirement: Optional[DocumentRequirement]) -> list[UploadedDocument]:
    """
    Make sure every upload finished cleanly and the required types are there.

    Returns the completed uploads. Raises DocumentsIncompleteError.
    """
    documents = list(documents)
    pending, failed = [], {}
    for index, doc in enumerate(documents):
        name = doc.filename or f"{doc.document_type.value}#{index + 1}"
        if doc.error:
            failed[name] = doc.error
        elif doc.progress < 100:
            pending.append(name)
        elif not doc.document_url:
            failed[name] = "no storage URL was returned"

    complete = [d for d in documents if d.is_complete]
    missing = requirement.missing({d.document_type for d in complete}) if requirement else []

    if pending or failed or missing:
        raise DocumentsIncompleteError(
            missing_types=[t.value for t in missing],
            failed_uploads=failed,
            pending_uploads=pending,
        )
    return complete


def coerce_uploads(raw: Iterable) -> list[UploadedDocument]:
    """Accept UploadedDocument objects or plain dicts from an HTTP body."""
    uploads = []
    for index, item in enumerate(raw or []):
        if isinstance(item, UploadedDocument):
            uploads.append(item)
            continue
        try:
            uploads.append(UploadedDocument.model_validate(item))
        except PydanticValidationError as e:
            raise ValidationError.for_fields({
                f"documents[{index}].{field}": problem
                for field, problem in field_errors_from(e).items()
            }) from e
    return uploads
