"""OS sampling layer for procwatch, built on psutil."""

import logging
import platform
import socket

import psutil

from procwatch.errors import SamplingError
from procwatch.models import DiskSnapshot, ProcessSample, SampleBatch, SystemSnapshot
from procwatch.units import bytes_to_normalized

logger = logging.getLogger(__name__)


def _os_name() -> str:
    """Distribution id from os-release where available, else the kernel name."""
    try:
        release = platform.freedesktop_os_release()
    except (AttributeError, OSError):
        release = {}
    return release.get("ID") or platform.system() or "<Unknown>"


class Sampler:
    """
    Reads raw OS state for the system, its disks and its process table.

    Every call performs a fresh synchronous read. Per-entity failures are
    reported in the returned batch instead of aborting the pass.
    """

    def __init__(self) -> None:
        """Initialize the Sampler and prime the system CPU counter."""
        # First call returns 0.0; later calls measure since the previous one
        psutil.cpu_percent(interval=None)
        self._hostname = socket.gethostname() or "<Unknown>"
        self._os_name = _os_name()
        self._cpu_arch = platform.machine() or "<Unknown>"

    def cpu_count(self) -> int:
        """Number of logical CPUs."""
        return psutil.cpu_count(logical=True) or 1

    def sample_system(self) -> SystemSnapshot:
        """
        Collect a snapshot of machine-wide CPU and memory usage.

        Raises:
            SamplingError: If psutil cannot read the system counters.
        """
        try:
            cpu_percent = psutil.cpu_percent(interval=None)
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as exc:
            raise SamplingError(f"system counters unavailable: {exc}") from exc

        used = max(0, mem.total - mem.available)
        return SystemSnapshot(
            hostname=self._hostname,
            os_name=self._os_name,
            cpu_arch=self._cpu_arch,
            cpu_count=self.cpu_count(),
            cpu_percent=round(min(max(cpu_percent, 0.0), 100.0), 1),
            total_memory=bytes_to_normalized(mem.total),
            used_memory=bytes_to_normalized(used),
            memory_total_bytes=mem.total,
            memory_used_bytes=used,
        )

    def sample_disks(self) -> SampleBatch:
        """Collect usage for every mounted physical disk, in enumeration order."""
        try:
            partitions = psutil.disk_partitions(all=False)
        except (OSError, psutil.Error) as exc:
            return SampleBatch(errors=(SamplingError(f"disk enumeration failed: {exc}"),))

        disks: list[DiskSnapshot] = []
        errors: list[SamplingError] = []
        for part in partitions:
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (OSError, psutil.Error) as exc:
                logger.debug("Skipping mount %s: %s", part.mountpoint, exc)
                errors.append(SamplingError(f"{part.mountpoint}: {exc}"))
                continue

            disks.append(
                DiskSnapshot(
                    name=part.device or part.mountpoint,
                    mount_point=part.mountpoint,
                    total_space=bytes_to_normalized(usage.total),
                    used_space=bytes_to_normalized(max(0, usage.total - usage.free)),
                )
            )

        return SampleBatch(items=tuple(disks), errors=tuple(errors))

    def sample_processes(self) -> SampleBatch:
        """
        Collect raw readings for all running processes.

        Uses the oneshot() context manager for efficient attribute access.
        Processes that exit mid-pass are skipped; processes that cannot be
        read are skipped and reported as SamplingError entries.
        """
        samples: list[ProcessSample] = []
        errors: list[SamplingError] = []

        for proc in psutil.process_iter():
            try:
                with proc.oneshot():
                    cpu_times = proc.cpu_times()
                    mem_info = proc.memory_info()
                    sample = ProcessSample(
                        pid=proc.pid,
                        name=proc.name() or "",
                        owner=self._owner(proc),
                        status=proc.status() or "",
                        create_time=proc.create_time(),
                        memory_rss=mem_info.rss,
                        cpu_time=cpu_times.user + cpu_times.system,
                    )
            except psutil.ZombieProcess:
                # Zombies keep their table entry but most attributes are gone
                samples.append(self._zombie_sample(proc))
                continue
            except psutil.NoSuchProcess:
                logger.debug("Process %s exited during sampling", proc.pid)
                continue
            except psutil.AccessDenied:
                errors.append(SamplingError("permission denied", pid=proc.pid))
                continue
            except OSError as exc:
                errors.append(SamplingError(str(exc), pid=proc.pid))
                continue

            samples.append(sample)

        if errors:
            logger.debug("Skipped %d unreadable processes", len(errors))
        return SampleBatch(items=tuple(samples), errors=tuple(errors))

    @staticmethod
    def _owner(proc: psutil.Process) -> str:
        """Process owner, or an empty string when the OS hides it."""
        try:
            return proc.username() or ""
        except (psutil.AccessDenied, KeyError):
            # KeyError: uid without a passwd entry
            return ""

    @staticmethod
    def _zombie_sample(proc: psutil.Process) -> ProcessSample:
        return ProcessSample(
            pid=proc.pid,
            name="",
            owner="",
            status=psutil.STATUS_ZOMBIE,
            create_time=0.0,
            memory_rss=0,
            cpu_time=0.0,
        )
