"""Configuration values for the procwatch engine."""

from dataclasses import dataclass

from procwatch.models import MonitorKind


@dataclass(frozen=True)
class MonitorConfig:
    """Timing knobs for sampling sessions and process control (seconds)."""

    system_interval: float = 1.0
    process_interval: float = 1.0
    min_interval: float = 0.1
    terminate_grace: float = 1.0  # wait after SIGTERM before reporting False
    kill_confirm_timeout: float = 3.0  # wait after SIGKILL for the process to vanish
    join_timeout: float = 5.0

    def interval_for(self, kind: MonitorKind) -> float:
        """Return the tick interval for a monitoring kind, clamped to the minimum."""
        if kind is MonitorKind.SYSTEM:
            interval = self.system_interval
        else:
            interval = self.process_interval
        return max(self.min_interval, interval)


CONFIG = MonitorConfig()
