"""Process termination primitives and the caller-side escalation policy."""

import logging
import os
from collections.abc import Callable

import psutil

from procwatch.config import CONFIG, MonitorConfig
from procwatch.errors import (
    InvalidProcessId,
    NotFound,
    PermissionDenied,
    TerminationTimeout,
    Unsupported,
)

logger = logging.getLogger(__name__)

# PID 0 is the kernel/idle task and PID 1 is init (or launchd) on every
# platform psutil supports
PROTECTED_PIDS = frozenset({0, 1})


class ProcessControlExecutor:
    """
    Terminates processes with graceful and forced signals.

    The executor never escalates on its own: ``try_terminate`` returning
    False is a defined outcome, and the caller decides whether to follow up
    with ``force_terminate``.
    """

    def __init__(self, config: MonitorConfig = CONFIG) -> None:
        """Initialize the ProcessControlExecutor."""
        self._config = config
        self._own_pid = os.getpid()

    def try_terminate(self, process_id: str) -> bool:
        """
        Ask a process to exit (SIGTERM, or TerminateProcess on Windows).

        Returns:
            True if the process is gone within the grace period, False if it
            is still alive.

        Raises:
            InvalidProcessId: ``process_id`` is not a positive integer.
            NotFound: No live process has this id.
            PermissionDenied: The caller may not signal the process.
            Unsupported: The process is protected or a zombie.
        """
        proc = self._lookup(process_id)
        try:
            proc.terminate()
        except psutil.Error as exc:
            raise self._translate(process_id, exc) from exc

        try:
            proc.wait(timeout=self._config.terminate_grace)
        except psutil.TimeoutExpired:
            logger.info("Process %s is still alive after SIGTERM", process_id)
            return False

        logger.info("Process %s terminated", process_id)
        return True

    def force_terminate(self, process_id: str) -> None:
        """
        Kill a process (SIGKILL) and wait until the OS confirms it is gone.

        Raises:
            InvalidProcessId: ``process_id`` is not a positive integer.
            NotFound: No live process has this id (for example it exited on
                its own in the meantime).
            PermissionDenied: The caller may not signal the process.
            Unsupported: The process is protected or a zombie.
            TerminationTimeout: The process survived the confirmation wait.
        """
        proc = self._lookup(process_id)
        try:
            proc.kill()
        except psutil.Error as exc:
            raise self._translate(process_id, exc) from exc

        try:
            proc.wait(timeout=self._config.kill_confirm_timeout)
        except psutil.TimeoutExpired as exc:
            raise TerminationTimeout(
                process_id,
                f"Timed out waiting for process {process_id} to terminate.",
            ) from exc

        logger.info("Process %s killed", process_id)

    def _lookup(self, process_id: str) -> psutil.Process:
        """Resolve an identifier to a process that may be signalled."""
        pid = self._parse(process_id)
        if pid in PROTECTED_PIDS or pid == self._own_pid:
            raise Unsupported(process_id, f"Refusing to terminate protected process {process_id}.")

        try:
            proc = psutil.Process(pid)
            status = proc.status()
        except psutil.Error as exc:
            raise self._translate(process_id, exc) from exc

        if status == psutil.STATUS_ZOMBIE:
            raise Unsupported(process_id, f"Process {process_id} is a zombie and cannot be signalled.")
        return proc

    @staticmethod
    def _parse(process_id: str) -> int:
        """Parse a decimal process identifier."""
        try:
            pid = int(str(process_id).strip())
        except ValueError as exc:
            raise InvalidProcessId(process_id, f"Invalid process ID ({process_id}) format: {exc}") from exc
        if pid < 0:
            raise InvalidProcessId(process_id, f"Invalid process ID ({process_id}) format: negative")
        return pid

    @staticmethod
    def _translate(process_id: str, exc: psutil.Error) -> Exception:
        """Map a psutil failure onto the control error taxonomy."""
        # ZombieProcess subclasses NoSuchProcess
        if isinstance(exc, psutil.ZombieProcess):
            return Unsupported(process_id, f"Process {process_id} is a zombie and cannot be signalled.")
        if isinstance(exc, psutil.NoSuchProcess):
            return NotFound(process_id, f"Process with ID {process_id} not found.")
        if isinstance(exc, psutil.AccessDenied):
            return PermissionDenied(process_id, f"Permission denied signalling process {process_id}.")
        return Unsupported(process_id, f"Cannot terminate process {process_id}: {exc}")


def escalate_termination(
    executor: ProcessControlExecutor,
    process_id: str,
    confirm_force: Callable[[str], bool] | None = None,
) -> bool:
    """
    Try a graceful termination, then force it if the process persists.

    Args:
        executor: Executor used for both steps.
        process_id: Identifier of the target process.
        confirm_force: Optional prompt consulted before the forced step;
            returning False leaves the process running.

    Returns:
        True if the process was terminated, False if forcing was declined.

    Raises:
        ControlError: Whatever either step raises, unchanged.
    """
    if executor.try_terminate(process_id):
        return True

    if confirm_force is not None and not confirm_force(process_id):
        logger.info("Forced termination of %s declined", process_id)
        return False

    executor.force_terminate(process_id)
    return True
