"""Unit tests for notification delivery and the in-app feed."""

import pytest

from vetverify.errors import AccountNotFoundError, NotificationNotFoundError
from vetverify.models import NotificationType
from vetverify.notifications import NotificationFeed, RepositoryNotificationSink


class TestNotificationEmitter:

    def test_subscribe_and_emit(self, sink, emitter, engine):
        engine.register_account("vet-1", "vet1@example.com", "veterinarian")
        received = []
        emitter.subscribe(received.append)

        sink.notify("vet-1", "hello", NotificationType.DOCUMENT_REMINDER)

        assert [n.message for n in received] == ["hello"]

    def test_unsubscribe(self, emitter):
        unsubscribe = emitter.subscribe(lambda n: None)
        assert emitter.listener_count == 1
        unsubscribe()
        unsubscribe()
        assert emitter.listener_count == 0

    def test_listener_error_does_not_stop_others(self, sink, emitter, engine):
        engine.register_account("vet-1", "vet1@example.com", "veterinarian")
        received = []

        def broken(notification):
            raise RuntimeError("socket closed")

        emitter.subscribe(broken)
        emitter.subscribe(received.append)

        sink.notify("vet-1", "hello", NotificationType.DOCUMENT_REMINDER)
        assert len(received) == 1


class TestRepositoryNotificationSink:

    def test_persists_to_feed(self, sink, repo, engine):
        engine.register_account("vet-1", "vet1@example.com", "veterinarian")

        sent = sink.notify("vet-1", "Upload your degree", NotificationType.DOCUMENT_REMINDER, link="/profile")

        stored = repo.notifications.get(sent.id)
        assert stored.message == "Upload your degree"
        assert stored.link == "/profile"
        assert stored.is_read is False

    def test_unknown_account(self, sink):
        with pytest.raises(AccountNotFoundError):
            sink.notify("ghost", "hi", NotificationType.DOCUMENT_REMINDER)

    def test_email_follows_preferences(self, sink, mailer, engine):
        engine.register_account("vet-1", "vet1@example.com", "veterinarian")
        engine.register_account("vet-2", "vet2@example.com", "veterinarian",
                                preferences={"email": {"status_changes": False}})

        sink.notify("vet-1", "approved", NotificationType.STATUS_APPROVED)
        sink.notify("vet-2", "approved", NotificationType.STATUS_APPROVED)

        assert [to for to, _, _ in mailer.sent] == ["vet1@example.com"]
        assert mailer.sent[0][1] == "Your profile has been approved"

    def test_new_applicant_email_off_by_default(self, sink, mailer, engine):
        engine.register_account("admin-1", "admin@example.com", "admin")
        sink.notify("admin-1", "new vet", NotificationType.NEW_APPLICANT)
        assert mailer.sent == []

    def test_mailer_failure_keeps_in_app_copy(self, repo, engine):
        class BrokenMailer:
            def send(self, to, subject, body):
                raise ConnectionError("relay down")

        engine.register_account("vet-1", "vet1@example.com", "veterinarian")
        sink = RepositoryNotificationSink(repo, mailer=BrokenMailer())

        sink.notify("vet-1", "approved", NotificationType.STATUS_APPROVED)

        assert len(repo.notifications.get_for_user("vet-1")) == 1


class TestNotificationFeed:

    @pytest.fixture
    def feed(self, repo, sink, engine):
        engine.register_account("vet-1", "vet1@example.com", "veterinarian")
        engine.register_account("vet-2", "vet2@example.com", "veterinarian")
        for message in ("first", "second", "third"):
            sink.notify("vet-1", message, NotificationType.DOCUMENT_REMINDER)
        sink.notify("vet-2", "other", NotificationType.DOCUMENT_REMINDER)
        return NotificationFeed(repo)

    def test_newest_first(self, feed):
        assert [n.message for n in feed.list_for_user("vet-1")] == ["third", "second", "first"]

    def test_mark_read(self, feed):
        target = feed.list_for_user("vet-1")[0]

        feed.mark_read("vet-1", target.id)
        feed.mark_read("vet-1", target.id)

        assert feed.unread_count("vet-1") == 2
        assert target.id not in [n.id for n in feed.list_for_user("vet-1", unread_only=True)]

    def test_mark_read_other_users_notification(self, feed):
        theirs = feed.list_for_user("vet-2")[0]
        with pytest.raises(NotificationNotFoundError):
            feed.mark_read("vet-1", theirs.id)

    def test_mark_read_unknown(self, feed):
        with pytest.raises(NotificationNotFoundError):
            feed.mark_read("vet-1", "notif-missing")

    def test_mark_all_read(self, feed):
        feed.mark_read("vet-1", feed.list_for_user("vet-1")[0].id)

        assert feed.mark_all_read("vet-1") == 2
        assert feed.mark_all_read("vet-1") == 0
        assert feed.unread_count("vet-1") == 0
        assert feed.unread_count("vet-2") == 1
