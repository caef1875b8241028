"""Tracked process set and per-process CPU accounting."""

import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass

from procwatch.models import ProcessRecord, ProcessSample, ProcessStatus
from procwatch.units import bytes_to_normalized, clamp_percent, format_run_time


@dataclass(slots=True)
class _CpuBaseline:
    """Cumulative CPU reading remembered between ticks."""

    create_time: float
    cpu_time: float
    timestamp: float


class ProcessRegistry:
    """
    Maintains the current set of known processes across ticks.

    Each update replaces the tracked set wholesale. CPU percent is expressed
    as percent of one logical CPU for the sampling interval, so a busy
    process on an N-core machine may report up to 100 * N.
    """

    def __init__(self, cpu_count: int = 1) -> None:
        """
        Initialize the ProcessRegistry.

        Args:
            cpu_count: Number of logical CPUs, used as the upper clamp.
        """
        self._cpu_count = max(1, cpu_count)
        self._lock = threading.Lock()
        self._baselines: dict[int, _CpuBaseline] = {}
        self._records: tuple[ProcessRecord, ...] = ()

    @property
    def cpu_count(self) -> int:
        return self._cpu_count

    def update(
        self,
        samples: Iterable[ProcessSample],
        timestamp: float | None = None,
    ) -> tuple[ProcessRecord, ...]:
        """
        Replace the tracked set with a freshly sampled one.

        Processes missing from ``samples`` are dropped silently. The returned
        tuple keeps the order of ``samples``.

        Args:
            samples: Raw readings from the Sampler, in OS enumeration order.
            timestamp: Wall-clock time of the sample; defaults to now.
        """
        now = time.time() if timestamp is None else timestamp
        with self._lock:
            baselines: dict[int, _CpuBaseline] = {}
            records: list[ProcessRecord] = []
            for sample in samples:
                cpu = self._cpu_percent(sample, now, baselines)
                records.append(self._to_record(sample, cpu, now))
            self._baselines = baselines
            self._records = tuple(records)
            return self._records

    def records(self) -> tuple[ProcessRecord, ...]:
        """The most recent published process set."""
        with self._lock:
            return self._records

    def get(self, process_id: str) -> ProcessRecord | None:
        """Look up a tracked process by identifier."""
        with self._lock:
            for record in self._records:
                if record.id == process_id:
                    return record
        return None

    def _cpu_percent(
        self,
        sample: ProcessSample,
        now: float,
        baselines: dict[int, _CpuBaseline],
    ) -> float:
        upper = 100.0 * self._cpu_count

        if sample.cpu_time is None:
            # The OS already reports a rate
            return clamp_percent(sample.cpu_rate or 0.0, upper)

        previous = self._baselines.get(sample.pid)
        baselines[sample.pid] = _CpuBaseline(sample.create_time, sample.cpu_time, now)

        # First sighting, or the PID now belongs to a different process
        if previous is None or previous.create_time != sample.create_time:
            return 0.0

        elapsed = now - previous.timestamp
        if elapsed <= 0:
            return 0.0
        return clamp_percent((sample.cpu_time - previous.cpu_time) / elapsed * 100.0, upper)

    @staticmethod
    def _to_record(sample: ProcessSample, cpu: float, now: float) -> ProcessRecord:
        running = now - sample.create_time if sample.create_time > 0 else 0.0
        return ProcessRecord(
            id=str(sample.pid),
            name=sample.name,
            owner=sample.owner,
            running_time=format_run_time(running),
            memory=bytes_to_normalized(sample.memory_rss),
            status=ProcessStatus.from_os(sample.status),
            cpu_percent=cpu,
            memory_bytes=sample.memory_rss,
        )
