"""Lifecycle management for periodic sampling sessions."""

import logging
import threading
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from procwatch.config import CONFIG, MonitorConfig
from procwatch.errors import SamplingError
from procwatch.models import MonitorKind
from procwatch.publisher import UpdatePublisher

logger = logging.getLogger(__name__)

Collector = Callable[[], Any]


class SessionState(Enum):
    """Lifecycle states of a monitoring kind."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class MonitoringSession:
    """
    Handle for one running monitoring kind.

    Owns a daemon thread that collects a snapshot, publishes it and then
    waits for the interval to elapse or for cancellation.
    """

    def __init__(
        self,
        kind: MonitorKind,
        interval: float,
        tick: Callable[["MonitoringSession"], bool],
    ) -> None:
        """
        Initialize the MonitoringSession.

        Args:
            kind: Monitoring kind this session samples.
            interval: Seconds between ticks.
            tick: Called once per tick with the session; returns whether
                a snapshot was published.
        """
        self.kind = kind
        self.interval = interval
        self._tick = tick
        self._stop_event = threading.Event()
        # Held while publishing; cancellation waits on it
        self.delivery_lock = threading.RLock()
        self._active = True
        self._ticks = 0
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name=f"{kind.value.capitalize()}Monitor",
        )

    @property
    def active(self) -> bool:
        """True until the session has been cancelled."""
        return self._active

    @property
    def ticks(self) -> int:
        """Number of ticks whose snapshot was published."""
        return self._ticks

    @property
    def thread(self) -> threading.Thread:
        """Background thread running the poll loop."""
        return self._thread

    @property
    def is_alive(self) -> bool:
        """Whether the background thread is still running."""
        return self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread."""
        self._thread.start()

    def cancel(self) -> None:
        """Stop the timer and make any in-flight sample unpublishable."""
        self._active = False
        self._stop_event.set()

    def wait_for_delivery(self) -> None:
        """Block until a delivery that is already under way has finished."""
        with self.delivery_lock:
            pass

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background thread to exit (no-op from the thread itself)."""
        if threading.current_thread() is self._thread or not self._thread.is_alive():
            return
        self._thread.join(timeout=timeout)

    def record_tick(self) -> None:
        """Count a published tick."""
        self._ticks += 1

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self._tick(self)
            # Wait for the interval or until cancellation is requested
            self._stop_event.wait(timeout=self.interval)

    def __repr__(self) -> str:
        return f"<MonitoringSession {self.kind.value} interval={self.interval}s active={self._active}>"


class _Slot:
    """Per-kind state guarded by its own lock."""

    __slots__ = ("lock", "state", "session")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.state = SessionState.STOPPED
        self.session: MonitoringSession | None = None


class SessionController:
    """
    Starts and stops one periodic sampling session per monitoring kind.

    ``start`` and ``stop`` are idempotent and may be called from any thread.
    Calls for the same kind are serialized by a per-kind lock, which is held
    only for the structural change and never across a sample.
    """

    def __init__(
        self,
        collectors: Mapping[MonitorKind, Collector],
        publisher: UpdatePublisher,
        config: MonitorConfig = CONFIG,
    ) -> None:
        """
        Initialize the SessionController.

        Args:
            collectors: Callable per kind producing the snapshot to publish.
            publisher: Publisher that delivers snapshots to subscribers.
            config: Interval and timeout settings.
        """
        self._collectors = dict(collectors)
        self._publisher = publisher
        self._config = config
        self._slots = {kind: _Slot() for kind in MonitorKind}

    def state(self, kind: MonitorKind | str) -> SessionState:
        """Current lifecycle state of a kind."""
        kind = MonitorKind.coerce(kind)
        return self._slots[kind].state

    def session(self, kind: MonitorKind | str) -> MonitoringSession | None:
        """The running session for a kind, if any."""
        kind = MonitorKind.coerce(kind)
        return self._slots[kind].session

    def is_running(self, kind: MonitorKind | str) -> bool:
        """Whether a kind is in the RUNNING state."""
        return self.state(kind) is SessionState.RUNNING

    def start(self, kind: MonitorKind | str) -> MonitoringSession:
        """Start periodic sampling for a kind, or return the running session."""
        kind = MonitorKind.coerce(kind)
        slot = self._slots[kind]
        with slot.lock:
            if slot.state is SessionState.RUNNING and slot.session is not None:
                return slot.session

            slot.state = SessionState.STARTING
            session = MonitoringSession(kind, self._config.interval_for(kind), self._run_tick)
            try:
                session.start()
            except RuntimeError:
                slot.state = SessionState.STOPPED
                raise
            slot.session = session
            slot.state = SessionState.RUNNING

        logger.info("Started %s monitoring every %.2fs", kind.value, session.interval)
        return session

    def stop(self, kind: MonitorKind | str) -> None:
        """
        Stop periodic sampling for a kind.

        Releases every subscription of the kind. Once this returns, no
        subscriber of the kind receives another snapshot.
        """
        kind = MonitorKind.coerce(kind)
        slot = self._slots[kind]
        with slot.lock:
            if slot.state is SessionState.STOPPED or slot.session is None:
                return

            slot.state = SessionState.STOPPING
            session = slot.session
            session.cancel()
            released = self._publisher.release(kind)
            slot.session = None
            slot.state = SessionState.STOPPED

        session.wait_for_delivery()
        session.join(timeout=self._config.join_timeout)
        logger.info("Stopped %s monitoring (%d subscriptions released)", kind.value, released)

    def stop_all(self) -> None:
        """Stop every kind."""
        for kind in MonitorKind:
            self.stop(kind)

    def refresh(self, kind: MonitorKind | str) -> bool:
        """
        Run one tick on demand in the calling thread.

        The snapshot is published only when the kind is running.

        Returns:
            True if a snapshot was published.
        """
        kind = MonitorKind.coerce(kind)
        session = self._slots[kind].session
        if session is None:
            return False
        return self._run_tick(session)

    def _run_tick(self, session: MonitoringSession) -> bool:
        """Collect one snapshot and publish it unless the session was cancelled."""
        kind = session.kind
        try:
            payload = self._collectors[kind]()
        except SamplingError as exc:
            logger.warning("%s tick failed: %s", kind.value, exc)
            return False
        except Exception:
            logger.exception("Unexpected error during %s tick", kind.value)
            return False

        with session.delivery_lock:
            if not session.active:
                logger.debug("Discarding %s snapshot from a stopped session", kind.value)
                return False
            self._publisher.publish(kind, payload)
            session.record_tick()
        return True
