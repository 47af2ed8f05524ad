"""
Shared helpers for the API routes.
"""

import logging
from dataclasses import dataclass

from flask import current_app, jsonify, request

from ..config import Settings
from ..errors import (
    VerificationError,
    ValidationError,
    DocumentsIncompleteError,
    AccountNotFoundError,
    NotificationNotFoundError,
    InvalidTransitionError,
    PartialBatchFailure,
)
from ..notifications import NotificationFeed, NotificationEmitter
from ..repositories import Repository
from ..review_queue import ReviewQueue, QueueFilter
from ..uploads import DocumentStore
from ..workflow import VerificationEngine

logger = logging.getLogger(__name__)

EXTENSION_KEY = "vetverify"


@dataclass
class Services:
    """Everything the routes need, built once per app."""
    repository: Repository
    settings: Settings
    engine: VerificationEngine
    queue: ReviewQueue
    feed: NotificationFeed
    emitter: NotificationEmitter
    documents: DocumentStore


def services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def json_body() -> dict:
    """Request JSON as a dict; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError.for_fields({name: "must be a whole number"}) from None


def queue_filter_from(source: dict) -> QueueFilter:
    return QueueFilter(
        search_text=source.get("search") or source.get("search_text") or "",
        role=source.get("role"),
    )


_STATUS_CODES = [
    (AccountNotFoundError, 404),
    (NotificationNotFoundError, 404),
    (InvalidTransitionError, 409),
    (PartialBatchFailure, 207),
    (DocumentsIncompleteError, 400),
    (ValidationError, 400),
]


def status_code_for(error: VerificationError) -> int:
    for error_cls, code in _STATUS_CODES:
        if isinstance(error, error_cls):
            return code
    return 400


def register_error_handlers(app) -> None:
    @app.errorhandler(VerificationError)
    def handle_verification_error(error: VerificationError):
        code = status_code_for(error)
        if code >= 400:
            logger.info("[API] %s %s -> %d %s", request.method, request.path, code, error.code)
        return jsonify(error.to_dict()), code
