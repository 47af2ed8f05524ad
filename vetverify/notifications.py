"""
Notification delivery - in-app feed, email, live subscribers.

The engine only ever talks to a NotificationSink. The default sink writes
the in-app feed through the repository, mails the recipient when their
email preferences allow it, and publishes to an emitter so live sessions
(the admin dashboard, a websocket bridge) can refresh without polling.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol

from .errors import AccountNotFoundError, NotificationNotFoundError
from .models import Notification, NotificationType, ProfessionalAccount
from .repositories import Repository

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], None]


class NotificationEmitter:
    """
    In-process publish/subscribe for new notifications.

    subscribe() returns a callable that removes the listener again.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, notification: Notification) -> None:
        """Notify all registered listeners."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.warning("Notification listener error: %s", e)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str) -> None:
        ...


class LoggingMailer:
    """Mailer that only logs. Stands in until an SMTP relay is wired up."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append((to, subject, body))
        logger.info("[MAIL] to=%s subject=%s", to, subject)


_SUBJECTS = {
    NotificationType.STATUS_APPROVED: "Your profile has been approved",
    NotificationType.STATUS_REJECTED: "Your profile needs changes",
    NotificationType.STATUS_SUSPENDED: "Your account has been suspended",
    NotificationType.NEW_APPLICANT: "New professional awaiting verification",
    NotificationType.DOCUMENT_REMINDER: "Action needed on your documents",
}


class NotificationSink(ABC):
    """Where the engine sends status and reminder messages."""

    @abstractmethod
    def notify(self, account_id: str, message: str, type: NotificationType,
               link: Optional[str] = None) -> Notification:
        pass


class RepositoryNotificationSink(NotificationSink):
    """Default sink: repository feed + optional mailer + emitter."""

    def __init__(self, repository: Repository, emitter: Optional[NotificationEmitter] = None,
                 mailer: Optional[Mailer] = None):
        self.repository = repository
        self.emitter = emitter or NotificationEmitter()
        self.mailer = mailer

    def notify(self, account_id: str, message: str, type: NotificationType,
               link: Optional[str] = None) -> Notification:
        account = self.repository.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        notification = Notification(user_id=account_id, message=message, type=type, link=link)
        self.repository.notifications.append(notification)
        self._send_email(account, notification)
        self.emitter.emit(notification)
        return notification

    def _send_email(self, account: ProfessionalAccount, notification: Notification) -> None:
        if self.mailer is None:
            return
        if not account.notification_preferences.email.allows(notification.type):
            return
        try:
            self.mailer.send(account.email, _SUBJECTS[notification.type], notification.message)
        except Exception as e:
            # The in-app copy is already stored
            logger.warning("Email to %s failed: %s", account.email, e)


class NotificationFeed:
    """Read side of the in-app feed for one user at a time."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        rows = self.repository.notifications.get_for_user(user_id)
        if unread_only:
            rows = [n for n in rows if not n.is_read]
        return rows

    def unread_count(self, user_id: str) -> int:
        return self.repository.notifications.count_unread(user_id)

    def mark_read(self, user_id: str, notification_id: str) -> Notification:
        notification = self.repository.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotificationNotFoundError(notification_id)
        if notification.mark_read():
            self.repository.notifications.save(notification)
        return notification

    def mark_all_read(self, user_id: str) -> int:
        """Returns how many were changed."""
        changed = 0
        for notification in self.repository.notifications.get_for_user(user_id):
            if notification.mark_read():
                self.repository.notifications.save(notification)
                changed += 1
        return changed

