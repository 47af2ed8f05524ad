"""
Verification API web app.

Flask app exposing the engine, review queue and notification feed.
"""

import logging
from typing import Optional

from flask import Flask, jsonify
from rich.logging import RichHandler

from .config import Settings, load_settings
from .notifications import NotificationEmitter, NotificationFeed, RepositoryNotificationSink, LoggingMailer, Mailer
from .repositories import Repository, configure_backend, get_repository
from .review_queue import ReviewQueue
from .routes import professionals_bp, admin_bp, notifications_bp, Services, register_error_handlers
from .routes.helpers import EXTENSION_KEY
from .uploads import DocumentStore, LocalDocumentStore
from .workflow import VerificationEngine


def configure_logging(level: str = "INFO") -> None:
    """Route log records through rich. Safe to call more than once."""
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
    root.setLevel(level)


def build_services(repository: Optional[Repository] = None, settings: Optional[Settings] = None,
                   mailer: Optional[Mailer] = None, document_store: Optional[DocumentStore] = None) -> Services:
    """Wire the repository, sink, engine, queue and document store together."""
    settings = settings or load_settings()
    if repository is None:
        configure_backend(settings.backend, data_dir=settings.data_dir)
        repository = get_repository()

    emitter = NotificationEmitter()
    sink = RepositoryNotificationSink(repository, emitter, mailer or LoggingMailer())
    return Services(
        repository=repository,
        settings=settings,
        engine=VerificationEngine(repository, sink, settings),
        queue=ReviewQueue(repository, settings),
        feed=NotificationFeed(repository),
        emitter=emitter,
        documents=document_store or LocalDocumentStore(settings.data_dir / "documents"),
    )


def create_app(repository: Optional[Repository] = None, settings: Optional[Settings] = None,
               mailer: Optional[Mailer] = None, document_store: Optional[DocumentStore] = None) -> Flask:
    app = Flask(__name__)
    svc = build_services(repository, settings, mailer, document_store)
    configure_logging(svc.settings.log_level)
    app.extensions[EXTENSION_KEY] = svc

    app.register_blueprint(professionals_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(notifications_bp)
    register_error_handlers(app)

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "backend": type(svc.repository).__name__})

    return app
