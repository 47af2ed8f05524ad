"""
Admin API routes - review queue, decisions, audit, export, maintenance.
"""

from flask import jsonify, request, Response

from . import admin_bp
from .helpers import services, json_body, int_arg, queue_filter_from
from ..errors import ValidationError
from ..review_queue import ReviewSelection, decide_selection


def _details(data: dict) -> dict:
    return {"reason": data.get("reason"), "comments": data.get("comments")}


@admin_bp.route("/api/admin/queue")
def list_queue():
    """Pending professionals. Query: search, role, page, page_size."""
    svc = services()
    page = svc.queue.list(
        queue_filter_from(request.args),
        page=int_arg("page", 1),
        page_size=int_arg("page_size"),
    )
    return jsonify(page.to_dict())


@admin_bp.route("/api/admin/accounts/<account_id>/decision", methods=["POST"])
def record_decision(account_id):
    """Approve or reject one pending account."""
    data = json_body()
    decision = services().engine.record_decision(
        account_id,
        data.get("decision", ""),
        _details(data),
        admin_id=data.get("admin_id"),
    )
    return jsonify(decision.model_dump(mode="json"))


@admin_bp.route("/api/admin/decisions/batch", methods=["POST"])
def batch_decision():
    """
    Decide many accounts at once.

    Body: {"account_ids": [...], "decision": ..., "reason": ..., "comments": ...}
    With "search" or "role" present, only ids in that filtered view are
    acted on (the queue's selection semantics). Returns 207 when some
    accounts failed.
    """
    svc = services()
    data = json_body()
    account_ids = data.get("account_ids")
    if not isinstance(account_ids, list) or not all(isinstance(i, str) for i in account_ids):
        raise ValidationError.for_fields({"account_ids": "must be a list of account ids"})

    if "search" in data or "role" in data:
        selection = ReviewSelection(svc.queue, set(account_ids))
        result = decide_selection(
            svc.engine, selection, queue_filter_from(data),
            data.get("decision", ""), _details(data), admin_id=data.get("admin_id"),
        )
    else:
        result = svc.engine.batch_record_decision(
            account_ids, data.get("decision", ""), _details(data), admin_id=data.get("admin_id"),
        )

    return jsonify(result.to_dict()), 200 if result.ok else 207


@admin_bp.route("/api/admin/accounts/<account_id>/suspend", methods=["POST"])
def suspend(account_id):
    data = json_body()
    decision = services().engine.suspend(
        account_id, admin_id=data.get("admin_id"),
        comments=data.get("comments"), reason=data.get("reason"),
    )
    return jsonify(decision.model_dump(mode="json"))


@admin_bp.route("/api/admin/accounts/<account_id>/reinstate", methods=["POST"])
def reinstate(account_id):
    data = json_body()
    decision = services().engine.reinstate(
        account_id, admin_id=data.get("admin_id"), comments=data.get("comments"),
    )
    return jsonify(decision.model_dump(mode="json"))


@admin_bp.route("/api/admin/accounts/<account_id>/history")
def history(account_id):
    """Audit trail of decisions for an account."""
    decisions = services().engine.history(account_id)
    return jsonify([d.model_dump(mode="json") for d in decisions])


@admin_bp.route("/api/admin/export/approved.csv")
def export_approved():
    """CSV snapshot of approved professionals."""
    csv_text = services().queue.export_approved()
    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=approved_professionals.csv"},
    )


@admin_bp.route("/api/admin/rejection-reasons")
def rejection_reasons():
    return jsonify(services().settings.rejection_reasons)


@admin_bp.route("/api/admin/reconcile", methods=["POST"])
def reconcile():
    report = services().engine.reconcile()
    return jsonify(report.to_dict())


@admin_bp.route("/api/admin/reminders", methods=["POST"])
def send_reminders():
    sent = services().engine.send_document_reminders()
    return jsonify({"sent": sent})
