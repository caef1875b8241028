"""Exception taxonomy for procwatch."""


class ProcwatchError(Exception):
    """Base class for every error raised by procwatch."""


class SamplingError(ProcwatchError):
    """
    An OS read failed.

    Per-entity failures (one process, one mount) are collected in a
    ``SampleBatch`` instead of being raised. ``Sampler.sample_system`` raises
    this when the OS interface itself is unavailable.
    """

    def __init__(self, reason: str, pid: int | None = None) -> None:
        self.reason = reason
        self.pid = pid
        if pid is None:
            super().__init__(reason)
        else:
            super().__init__(f"pid {pid}: {reason}")


class ControlError(ProcwatchError):
    """A process control request failed."""

    def __init__(self, process_id: str, message: str) -> None:
        self.process_id = process_id
        super().__init__(message)


class NotFound(ControlError):
    """The identifier does not map to a live process."""


class PermissionDenied(ControlError):
    """The caller lacks the rights to signal the process."""


class Unsupported(ControlError):
    """The OS (or the engine) refuses to terminate this class of process."""


class InvalidProcessId(ControlError):
    """The identifier is not a valid process id."""


class TerminationTimeout(ControlError):
    """The process was signalled but did not disappear in time."""

