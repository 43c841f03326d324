"""
Notification gateway.

The circulation engine hands finished notifications to a gateway after its
transaction commits and moves on. Delivery happens elsewhere: the background
gateway pushes messages onto a bounded queue that a single worker thread
drains through a NotificationSender. A delivery failure, or a full queue, is
logged here and goes no further; it never reaches the transition that asked
for the message.
"""

import asyncio
import logging
import queue
import threading
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, EmailStr, Field

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """An email waiting to be sent."""

    recipient_name: str = Field(..., min_length=1)
    recipient_address: EmailStr
    subject: str = Field(..., min_length=1, max_length=200)
    body: str

    model_config = ConfigDict(frozen=True)


class NotificationSender(ABC):
    """Delivers one notification; may raise on failure."""

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        """Deliver the notification."""


class NotificationGateway(ABC):
    """Fire-and-forget notification scheduling."""

    @abstractmethod
    def enqueue(self, notification: Notification) -> None:
        """Schedule delivery and return immediately."""

    def close(self) -> None:  # noqa: B027 - optional hook
        """Release any resources; pending deliveries may be finished first."""


class NullNotificationGateway(NotificationGateway):
    """Drops every notification; used when notifications are disabled."""

    def enqueue(self, notification: Notification) -> None:
        logger.debug("Notifications disabled; dropping '%s'", notification.subject)


class RecordingNotificationGateway(NotificationGateway):
    """Keeps notifications in memory instead of sending them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._notifications: list[Notification] = []

    def enqueue(self, notification: Notification) -> None:
        with self._lock:
            self._notifications.append(notification)

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)

    def clear(self) -> None:
        with self._lock:
            self._notifications.clear()


_STOP = object()


class BackgroundNotificationGateway(NotificationGateway):
    """
    Queue-backed gateway with one delivery worker.

    The worker owns an asyncio event loop so senders can use async client
    libraries. Messages are delivered at most once each, in enqueue order.
    """

    def __init__(self, sender: NotificationSender, max_queue_size: int = 1000):
        self.sender = sender
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._closed = False
        self._worker = threading.Thread(
            target=self._run, name="notification-worker", daemon=True
        )
        self._worker.start()

    def enqueue(self, notification: Notification) -> None:
        if self._closed:
            logger.warning("Notification gateway closed; dropping '%s'", notification.subject)
            return
        try:
            self._queue.put_nowait(notification)
        except queue.Full:
            logger.error(
                "Notification queue full (%d); dropping '%s' for %s",
                self._queue.maxsize,
                notification.subject,
                notification.recipient_address,
            )

    def flush(self) -> None:
        """Block until every queued notification has been attempted."""
        self._queue.join()

    def close(self, timeout: float = 10.0) -> None:
        """Deliver what is queued, then stop the worker."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("Notification worker did not stop within %.1fs", timeout)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        try:
            while True:
                item = self._queue.get()
                try:
                    if item is _STOP:
                        return
                    self._deliver(loop, item)
                finally:
                    self._queue.task_done()
        finally:
            loop.close()

    def _deliver(self, loop: asyncio.AbstractEventLoop, notification: Notification) -> None:
        try:
            loop.run_until_complete(self.sender.send(notification))
            logger.info(
                "Sent '%s' to %s", notification.subject, notification.recipient_address
            )
        except Exception:
            # Delivery is best effort; the transition that queued this already committed
            logger.exception(
                "Failed to send '%s' to %s",
                notification.subject,
                notification.recipient_address,
            )
