"""
Professional-facing API routes.

Account registration (from the identity provider hook), profile
submission and self-edit, and the account's own view of its status.
"""

from flask import jsonify, request
from pydantic import ValidationError as PydanticValidationError

from . import professionals_bp
from .helpers import services, json_body
from ..errors import ValidationError
from ..models import UploadedDocument
from ..uploads import infer_document_type
from ..validation import field_errors_from


def _record_dict(record) -> dict:
    return {
        "account": record.account.model_dump(mode="json"),
        "profile": record.profile.model_dump(mode="json") if record.profile else None,
        "documents": [d.model_dump(mode="json") for d in record.documents],
        "in_sync": record.in_sync,
    }


@professionals_bp.route("/api/accounts", methods=["POST"])
def register_account():
    """Register an account created by the identity provider."""
    data = json_body()
    account = services().engine.register_account(
        data.get("id", ""),
        data.get("email", ""),
        data.get("role", ""),
        preferences=data.get("notification_preferences"),
    )
    return jsonify(account.model_dump(mode="json")), 201


@professionals_bp.route("/api/accounts/<account_id>")
def get_account(account_id):
    """Account with its current profile and documents."""
    engine = services().engine
    record = engine.get_record(account_id)
    data = _record_dict(record)
    data["state"] = engine.state(account_id).value
    return jsonify(data)


@professionals_bp.route("/api/accounts/<account_id>/preferences", methods=["PUT"])
def update_preferences(account_id):
    account = services().engine.update_preferences(account_id, json_body())
    return jsonify(account.notification_preferences.model_dump(mode="json"))


@professionals_bp.route("/api/accounts/<account_id>/profile", methods=["POST"])
def submit_profile(account_id):
    """
    Submit (or resubmit after rejection) a profile.

    Body: {"profile": {...role fields...}, "documents": [{document_type, document_url, ...}]}
    """
    data = json_body()
    profile = services().engine.submit_profile(
        account_id,
        data.get("profile") or {},
        data.get("documents") or [],
    )
    return jsonify(profile.model_dump(mode="json")), 201


@professionals_bp.route("/api/accounts/<account_id>/documents", methods=["POST"])
def upload_document(account_id):
    """
    Store one verification document (multipart field "file").

    Optional form fields: document_type (inferred from the file name when
    absent) and expires_at. The response is the upload entry to include in
    the profile submission's "documents" list.
    """
    svc = services()
    account = svc.engine.get_record(account_id).account
    if not account.is_professional:
        raise ValidationError(f"Accounts with role '{account.role.value}' do not upload verification documents")

    file = request.files.get("file")
    if file is None or not file.filename:
        raise ValidationError.for_fields({"file": "this field is required"})

    try:
        upload = UploadedDocument(
            document_type=request.form.get("document_type") or infer_document_type(file.filename, account.role),
            filename=file.filename,
            expires_at=request.form.get("expires_at") or None,
            progress=0,
        )
    except PydanticValidationError as e:
        raise ValidationError.for_fields(field_errors_from(e)) from e

    result = svc.documents.upload(account_id, file.filename, file.read())
    if not result.ok:
        raise ValidationError.for_fields({"file": result.error or "upload failed"})

    upload.document_url = result.url
    upload.progress = 100
    return jsonify(upload.model_dump(mode="json")), 201


@professionals_bp.route("/api/accounts/<account_id>/profile", methods=["PATCH"])
def update_profile(account_id):
    """Self-edit. Body is the changed fields only."""
    profile = services().engine.update_profile(account_id, json_body())
    return jsonify(profile.model_dump(mode="json"))


@professionals_bp.route("/api/accounts/<account_id>/profile/history")
def profile_history(account_id):
    """Every stored profile version, oldest first."""
    svc = services()
    svc.engine.get_record(account_id)
    return jsonify([p.model_dump(mode="json") for p in svc.repository.profiles.history(account_id)])


@professionals_bp.route("/api/document-types")
def document_requirements():
    """Required document types per role, for the upload form."""
    settings = services().settings
    return jsonify({
        role.value: {
            "required": [t.value for t in requirement.required],
            "minimum": requirement.minimum_distinct,
        }
        for role, requirement in settings.requirements.items()
    })

