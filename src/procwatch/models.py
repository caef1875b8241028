"""Data models for procwatch."""

from dataclasses import dataclass
from enum import Enum

from procwatch.errors import SamplingError
from procwatch.units import NormalizedSize, normalized_to_bytes, percent


class MonitorKind(Enum):
    """Kinds of periodic monitoring, each with its own session."""

    SYSTEM = "system"
    PROCESS = "process"

    @property
    def event(self) -> str:
        """Name of the push event delivered for this kind."""
        if self is MonitorKind.SYSTEM:
            return "system_update"
        return "process_list_update"

    @classmethod
    def coerce(cls, kind: "MonitorKind | str") -> "MonitorKind":
        """Accept either a MonitorKind or its string value."""
        if isinstance(kind, cls):
            return kind
        return cls(str(kind).lower())


class ProcessStatus(Enum):
    """Normalized process state."""

    RUNNING = "Running"
    SLEEPING = "Sleeping"
    STOPPED = "Stopped"
    ZOMBIE = "Zombie"
    UNKNOWN = "Unknown"

    @classmethod
    def from_os(cls, status: str | None) -> "ProcessStatus":
        """Map a psutil status string onto the normalized states."""
        if not status:
            return cls.UNKNOWN
        return _OS_STATUS_MAP.get(status.lower(), cls.UNKNOWN)


_OS_STATUS_MAP = {
    "running": ProcessStatus.RUNNING,
    "sleeping": ProcessStatus.SLEEPING,
    "disk-sleep": ProcessStatus.SLEEPING,
    "idle": ProcessStatus.SLEEPING,
    "waiting": ProcessStatus.SLEEPING,
    "waking": ProcessStatus.SLEEPING,
    "parked": ProcessStatus.SLEEPING,
    "locked": ProcessStatus.SLEEPING,
    "stopped": ProcessStatus.STOPPED,
    "tracing-stop": ProcessStatus.STOPPED,
    "zombie": ProcessStatus.ZOMBIE,
    "dead": ProcessStatus.ZOMBIE,
}


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Immutable snapshot of machine-wide state."""

    hostname: str
    os_name: str
    cpu_arch: str
    cpu_count: int
    cpu_percent: float  # 0.0 - 100.0, one decimal
    total_memory: NormalizedSize
    used_memory: NormalizedSize
    memory_total_bytes: int = 0
    memory_used_bytes: int = 0

    @property
    def memory_percent(self) -> float:
        """Share of memory in use."""
        return percent(self.memory_used_bytes, self.memory_total_bytes)


@dataclass(slots=True, frozen=True)
class DiskSnapshot:
    """Immutable snapshot of one mounted disk."""

    name: str
    mount_point: str
    total_space: NormalizedSize
    used_space: NormalizedSize

    @property
    def usage_percent(self) -> float:
        """Share of the disk in use, computed from the normalized sizes."""
        return percent(normalized_to_bytes(self.used_space), normalized_to_bytes(self.total_space))


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """
    Raw per-process reading handed from the Sampler to the Registry.

    Exactly one of ``cpu_time`` (cumulative CPU seconds) or ``cpu_rate``
    (an already computed percent of one logical CPU) is expected to be set.
    """

    pid: int
    name: str
    owner: str
    status: str
    create_time: float
    memory_rss: int
    cpu_time: float | None = None
    cpu_rate: float | None = None


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable, display-ready view of a process."""

    id: str
    name: str
    owner: str
    running_time: str
    memory: NormalizedSize
    status: ProcessStatus
    cpu_percent: float  # percent of one logical CPU, 0.0 - 100.0 * cpu_count
    memory_bytes: int = 0


@dataclass(slots=True, frozen=True)
class SampleBatch:
    """Partial result of a sampling pass together with per-entity failures."""

    items: tuple = ()
    errors: tuple[SamplingError, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)
