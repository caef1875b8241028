"""Push channel that fans snapshots out to subscribers."""

import itertools
import logging
import threading
from collections.abc import Callable
from queue import Empty, Queue
from typing import Any

from procwatch.models import MonitorKind

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class Subscription:
    """
    Handle returned by ``UpdatePublisher.subscribe``.

    With a callback, every delivered snapshot is passed to it on the ticking
    thread. Without one, the subscription keeps only the newest snapshot in
    a one-slot mailbox that a consumer drains with ``get`` or ``latest``.
    """

    def __init__(self, sub_id: int, kind: MonitorKind, callback: Callback | None = None) -> None:
        """Initialize the Subscription."""
        self.id = sub_id
        self.kind = kind
        self._callback = callback
        self._mailbox: Queue[Any] = Queue(maxsize=1)
        self._mailbox_lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        """False once the subscription has been closed."""
        return self._active

    def close(self) -> None:
        """Stop delivering snapshots to this subscription."""
        self._active = False

    def deliver(self, payload: Any) -> None:
        """Hand a snapshot to this subscriber."""
        if not self._active:
            return
        if self._callback is not None:
            self._callback(payload)
            return
        # Replace any unread snapshot with the newer one
        with self._mailbox_lock:
            try:
                self._mailbox.get_nowait()
            except Empty:
                pass
            self._mailbox.put_nowait(payload)

    def get(self, timeout: float | None = None) -> Any:
        """
        Wait for the next snapshot.

        Raises:
            queue.Empty: If nothing arrives within ``timeout`` seconds.
        """
        return self._mailbox.get(timeout=timeout)

    def latest(self) -> Any | None:
        """Return the newest undelivered snapshot without blocking, if any."""
        try:
            return self._mailbox.get_nowait()
        except Empty:
            return None

    def __repr__(self) -> str:
        state = "active" if self._active else "closed"
        return f"<Subscription {self.id} {self.kind.value} {state}>"


class UpdatePublisher:
    """Keeps per-kind subscriber lists and delivers snapshots to them."""

    def __init__(self) -> None:
        """Initialize the UpdatePublisher with empty subscriber lists."""
        self._ids = itertools.count(1)
        self._locks = {kind: threading.Lock() for kind in MonitorKind}
        self._subscribers: dict[MonitorKind, list[Subscription]] = {kind: [] for kind in MonitorKind}

    def subscribe(self, kind: MonitorKind | str, callback: Callback | None = None) -> Subscription:
        """Register a subscriber for one monitoring kind."""
        kind = MonitorKind.coerce(kind)
        subscription = Subscription(next(self._ids), kind, callback)
        with self._locks[kind]:
            self._subscribers[kind].append(subscription)
        logger.debug("Subscribed %r", subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Calling this twice, or during delivery, is safe."""
        subscription.close()
        with self._locks[subscription.kind]:
            subscribers = self._subscribers[subscription.kind]
            if subscription in subscribers:
                subscribers.remove(subscription)

    def release(self, kind: MonitorKind | str) -> int:
        """Close every subscription of a kind and return how many there were."""
        kind = MonitorKind.coerce(kind)
        with self._locks[kind]:
            released = self._subscribers[kind]
            self._subscribers[kind] = []
        for subscription in released:
            subscription.close()
        return len(released)

    def subscriber_count(self, kind: MonitorKind | str) -> int:
        """Number of live subscriptions for a kind."""
        kind = MonitorKind.coerce(kind)
        with self._locks[kind]:
            return len(self._subscribers[kind])

    def publish(self, kind: MonitorKind | str, payload: Any) -> int:
        """
        Deliver a snapshot to every live subscriber of a kind.

        Iterates over a copy of the subscriber list so that subscribers may
        unsubscribe from inside their callback. A failing callback is logged
        and does not prevent delivery to the others.

        Returns:
            Number of subscribers the snapshot was delivered to.
        """
        kind = MonitorKind.coerce(kind)
        with self._locks[kind]:
            subscribers = list(self._subscribers[kind])

        delivered = 0
        for subscription in subscribers:
            if not subscription.active:
                continue
            try:
                subscription.deliver(payload)
                delivered += 1
            except Exception:
                logger.exception("Subscriber %r failed while handling %s", subscription, kind.event)
        return delivered
