# checkout_portal/notifications.py
"""
Notification feed for the signed-in user.

Notifications are created by the backend on request state changes. The
portal refreshes the feed on a fixed interval and routes each notification
to the request filter it concerns.
"""
import logging
import threading

from .api_client import ApiError
from .models import Notification, NotificationKind

logger = logging.getLogger(__name__)

KIND_FILTERS = {
    NotificationKind.REQUEST_APPROVED: "approved",
    NotificationKind.REQUEST_DENIED: "denied",
    NotificationKind.RETURN_REQUEST: "return_requested",
    NotificationKind.RETURN_CONFIRMED: "returned",
    NotificationKind.OVERDUE: "overdue",
    NotificationKind.DUE_SOON: "due",
    NotificationKind.OTHER: None,
}


def target_filter(notification: Notification):
    """Request filter to open when the notification is followed (or None)."""
    return KIND_FILTERS[notification.kind]


def unread_count(notifications) -> int:
    return sum(1 for n in notifications if not n.read)


def notification_view(notification: Notification) -> dict:
    row = notification.to_dict()
    row["targetFilter"] = target_filter(notification)
    return row


class NotificationFeed:
    def __init__(self, client):
        self.client = client
        self.notifications = []

    @property
    def unread(self) -> int:
        return unread_count(self.notifications)

    def refresh(self):
        """Refetch the feed. On failure the previous feed is kept."""
        try:
            data = self.client.get_notifications()
        except ApiError as e:
            logger.warning("Error fetching notifications: %s", e.message)
            return None
        try:
            notifications = [Notification.from_dict(n) for n in data or []]
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Malformed notifications payload: %s", e)
            return None
        self.notifications = notifications
        return self.notifications

    def mark_read(self, notification_id):
        self.client.mark_notification_read(notification_id)
        return self.refresh()

    def mark_all_read(self):
        self.client.mark_all_notifications_read()
        return self.refresh()


class NotificationPoller:
    """
    Refresh a ``NotificationFeed`` every ``interval`` seconds.

    ``on_update(feed)`` is called after each successful refresh. Use as a
    context manager, or call ``start``/``stop``.
    """

    def __init__(self, feed: NotificationFeed, interval=30, on_update=None):
        self.feed = feed
        self.interval = interval
        self.on_update = on_update
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="notification-poller", daemon=True
        )
        self._thread.start()

    def stop(self, timeout=None):
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self):
        self._tick()
        while not self._stop.wait(self.interval):
            self._tick()

    def _tick(self):
        try:
            if self.feed.refresh() is not None and self.on_update is not None:
                self.on_update(self.feed)
        except Exception:
            # leave for the next tick
            logger.exception("Notification poll failed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
