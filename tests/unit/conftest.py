"""
Unit test fixtures.

All unit tests should be:
- Fast (< 100ms)
- Isolated (in-memory repository, no disk)
- Deterministic (ticking clock, same result every time)
"""

import pytest
from datetime import datetime, timedelta

from vetverify.config import Settings
from vetverify.notifications import NotificationEmitter, RepositoryNotificationSink, LoggingMailer
from vetverify.repositories import MemoryRepository
from vetverify.review_queue import ReviewQueue
from vetverify.workflow import VerificationEngine


class TickingClock:
    """Each call returns a time one minute after the previous one."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def fixed_time():
    """Fixed datetime for deterministic tests."""
    return datetime(2024, 1, 15, 12, 0, 0)


@pytest.fixture
def clock(fixed_time):
    return TickingClock(fixed_time)


@pytest.fixture
def settings():
    return Settings(backend="memory", batch_workers=4)


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def mailer():
    return LoggingMailer()


@pytest.fixture
def emitter():
    return NotificationEmitter()


@pytest.fixture
def sink(repo, emitter, mailer):
    return RepositoryNotificationSink(repo, emitter, mailer)


@pytest.fixture
def engine(repo, sink, settings, clock):
    return VerificationEngine(repo, sink, settings, clock=clock)


@pytest.fixture
def queue(repo, settings):
    return ReviewQueue(repo, settings)


@pytest.fixture
def admin(engine):
    return engine.register_account("admin-1", "admin@vetverify.test", "admin")


@pytest.fixture
def make_pending(engine, vet_data, vendor_data, vet_uploads, vendor_uploads):
    """
    Register an account and submit a valid profile for it.

    Usage:
        make_pending("vet-1")
        make_pending("vendor-1", role="vendor", business_name="Bark Bazaar")
    """
    def _make(account_id, role="veterinarian", email=None, **overrides):
        engine.register_account(account_id, email or f"{account_id}@example.com", role)
        if role == "vendor":
            data, uploads = dict(vendor_data), vendor_uploads
        else:
            data, uploads = dict(vet_data), vet_uploads
        data.update(overrides)
        return engine.submit_profile(account_id, data, uploads)

    return _make


@pytest.fixture
def make_approved(engine, make_pending):
    def _make(account_id, role="veterinarian", **overrides):
        make_pending(account_id, role=role, **overrides)
        engine.record_decision(account_id, "approved", admin_id="admin-1")
        return engine.get_record(account_id)

    return _make
