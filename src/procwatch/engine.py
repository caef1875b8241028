"""Boundary facade consumed by user interfaces."""

import logging

from procwatch.config import CONFIG, MonitorConfig
from procwatch.control import ProcessControlExecutor
from procwatch.models import DiskSnapshot, MonitorKind, ProcessRecord, SystemSnapshot
from procwatch.publisher import Callback, Subscription, UpdatePublisher
from procwatch.registry import ProcessRegistry
from procwatch.sampler import Sampler
from procwatch.session import MonitoringSession, SessionController

logger = logging.getLogger(__name__)


class MonitorEngine:
    """
    Single-machine monitoring and process control engine.

    Wires the Sampler, Process Registry, Update Publisher, Session
    Controller and Process Control Executor together and exposes the
    command/event surface a front-end talks to. Snapshots handed out are
    immutable, so consumers never share mutable state with the engine.
    """

    def __init__(
        self,
        config: MonitorConfig = CONFIG,
        sampler: Sampler | None = None,
        executor: ProcessControlExecutor | None = None,
    ) -> None:
        """
        Initialize the MonitorEngine.

        Args:
            config: Interval and timeout settings.
            sampler: OS sampler; a psutil-backed one is created by default.
            executor: Process control executor; created by default.
        """
        self.config = config
        self.sampler = sampler if sampler is not None else Sampler()
        self.registry = ProcessRegistry(cpu_count=self.sampler.cpu_count())
        self.publisher = UpdatePublisher()
        self.executor = executor if executor is not None else ProcessControlExecutor(config)
        self.sessions = SessionController(
            {
                MonitorKind.SYSTEM: self.sampler.sample_system,
                MonitorKind.PROCESS: self._collect_processes,
            },
            self.publisher,
            config,
        )

    def _collect_processes(self) -> tuple[ProcessRecord, ...]:
        """Sample every process and fold the readings into the registry."""
        batch = self.sampler.sample_processes()
        for error in batch.errors:
            logger.debug("Process sampling: %s", error)
        return self.registry.update(batch.items)

    # One-shot queries

    def get_system_info(self) -> SystemSnapshot:
        """Read hostname, OS, CPU and memory now."""
        return self.sampler.sample_system()

    def get_all_disks(self) -> tuple[DiskSnapshot, ...]:
        """Enumerate disks now; every call re-reads the mount table."""
        batch = self.sampler.sample_disks()
        for error in batch.errors:
            logger.debug("Disk sampling: %s", error)
        return batch.items

    def list_processes(self) -> tuple[ProcessRecord, ...]:
        """Run one process sampling pass outside any session and return the records."""
        return self._collect_processes()

    # Session control

    def start_monitoring(self, kind: MonitorKind | str) -> MonitoringSession:
        """Start periodic sampling for a kind; a no-op if it is already running."""
        return self.sessions.start(kind)

    def stop_monitoring(self, kind: MonitorKind | str) -> None:
        """Stop a kind; no event of that kind is delivered once this returns."""
        self.sessions.stop(kind)

    def refresh(self, kind: MonitorKind | str) -> bool:
        """Publish one extra snapshot of a running kind immediately."""
        return self.sessions.refresh(kind)

    def is_monitoring(self, kind: MonitorKind | str) -> bool:
        """Whether periodic sampling of a kind is running."""
        return self.sessions.is_running(kind)

    # Push events

    def subscribe(self, kind: MonitorKind | str, callback: Callback | None = None) -> Subscription:
        """Subscribe to the push events of a kind."""
        return self.publisher.subscribe(kind, callback)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription; safe to call more than once."""
        self.publisher.unsubscribe(subscription)

    # Process control

    def try_kill_process_by_id(self, process_id: str) -> bool:
        """Graceful termination; True only if the process exited within the grace period."""
        return self.executor.try_terminate(process_id)

    def force_kill_process_by_id(self, process_id: str) -> None:
        """Forced termination, waiting until the process is confirmed gone."""
        self.executor.force_terminate(process_id)

    def shutdown(self) -> None:
        """Stop every monitoring session."""
        self.sessions.stop_all()
