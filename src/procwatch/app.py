"""procwatch - Textual front-end and command line entry point."""

import argparse
import dataclasses
import logging
from enum import Enum

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from procwatch.config import CONFIG, MonitorConfig
from procwatch.control import escalate_termination
from procwatch.engine import MonitorEngine
from procwatch.errors import ControlError
from procwatch.models import DiskSnapshot, MonitorKind, ProcessRecord, SystemSnapshot

logger = logging.getLogger(__name__)


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    USER = "user"


def usage_bar(value: float, color: str, width: int = 20) -> str:
    """Render a percentage as a fixed-width markup bar."""
    filled = min(int(value / (100 / width)), width)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


class HeaderStats(Static):
    """Header widget showing host, CPU and memory statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 4;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize the header stats widget."""
        super().__init__(*args, **kwargs)
        self._snapshot: SystemSnapshot | None = None

    @property
    def snapshot(self) -> SystemSnapshot | None:
        """The most recently shown system snapshot."""
        return self._snapshot

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Static(self._get_host_info(), id="host-info"),
            Static(self._get_usage_info(), id="usage-info"),
        )

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Update the statistics from a system snapshot."""
        self._snapshot = snapshot
        if not self.is_mounted:
            return
        self.query_one("#host-info", Static).update(self._get_host_info())
        self.query_one("#usage-info", Static).update(self._get_usage_info())

    def _get_host_info(self) -> str:
        snap = self._snapshot
        if snap is None:
            return "Loading system info..."
        return f"Host: {snap.hostname}\nOS:   {snap.os_name} ({snap.cpu_arch})\nCPUs: {snap.cpu_count}"

    def _get_usage_info(self) -> str:
        snap = self._snapshot
        if snap is None:
            return ""
        # Escaped brackets around the bars
        return (
            f"CPU \\[{usage_bar(snap.cpu_percent, 'green')}] {snap.cpu_percent:5.1f}%\n"
            f"Mem \\[{usage_bar(snap.memory_percent, 'cyan')}] {snap.used_memory}/{snap.total_memory}"
        )


class DiskPanel(Static):
    """One line per disk with its usage bar."""

    DEFAULT_CSS = """
    DiskPanel {
        height: auto;
        padding: 0 1;
        border-top: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize the disk panel."""
        super().__init__("Loading disks...", *args, **kwargs)
        self._disks: tuple[DiskSnapshot, ...] = ()

    @property
    def disks(self) -> tuple[DiskSnapshot, ...]:
        """The disks currently shown."""
        return self._disks

    def update_disks(self, disks: tuple[DiskSnapshot, ...]) -> None:
        """Render one usage line per disk."""
        self._disks = disks
        if not disks:
            self.update("No disks found")
            return
        lines = []
        for disk in disks:
            usage = disk.usage_percent
            lines.append(
                f"{disk.name[:24]:<24} \\[{usage_bar(usage, 'yellow')}] "
                f"{disk.used_space}/{disk.total_space} ({usage:.1f}%)"
            )
        self.update("\n".join(lines))


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize the process table."""
        super().__init__(*args, **kwargs)
        self._current_ids: set[str] = set()
        self._row_order: list[str] = []
        self._records: tuple[ProcessRecord, ...] = ()
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def current_ids(self) -> set[str]:
        return self._current_ids

    @property
    def row_order(self) -> list[str]:
        """Process identifiers in the order their rows are shown."""
        return list(self._row_order)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key, re-order the shown rows and return the key."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        # Largest first for usage columns
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        if self.is_mounted:
            self.update_processes(self._records)
        return self._sort_key

    def compose(self) -> ComposeResult:
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("STATUS", key="status", width=9)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM", key="mem", width=10)
        table.add_column("TIME", key="time", width=42)
        table.add_column("Name", key="name")

    def selected_id(self) -> str | None:
        """Identifier of the process under the cursor, if any."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    def update_processes(self, records: tuple[ProcessRecord, ...]) -> None:
        """
        Update the process table with a new process list.

        While the sorted order is unchanged, rows are updated cell by cell
        instead of re-rendering the whole table. When the order changes
        (new or vanished processes, shifted values, another sort key) the
        rows are rebuilt and the cursor stays on the selected process.
        """
        table = self.query_one("#process-table", DataTable)
        ordered = self._sort_records(records)
        order = [record.id for record in ordered]

        if order == self._row_order:
            for record in ordered:
                self._update_row(table, record)
        else:
            selected = self.selected_id()
            table.clear()
            for record in ordered:
                table.add_row(*self._cells(record), key=record.id)
            if selected in order:
                table.move_cursor(row=order.index(selected))

        self._records = records
        self._row_order = order
        self._current_ids = set(order)

    def _sort_records(self, records: tuple[ProcessRecord, ...]) -> list[ProcessRecord]:
        key_func = {
            SortKey.CPU: lambda r: r.cpu_percent,
            SortKey.MEM: lambda r: r.memory_bytes,
            SortKey.PID: lambda r: int(r.id),
            SortKey.USER: lambda r: r.owner.lower(),
        }
        return sorted(records, key=key_func[self._sort_key], reverse=self._sort_reverse)

    @staticmethod
    def _cells(record: ProcessRecord) -> tuple[str, ...]:
        return (
            record.id,
            record.owner[:10],
            record.status.value,
            f"{record.cpu_percent:5.1f}",
            str(record.memory),
            record.running_time,
            record.name[:50],
        )

    def _update_row(self, table: DataTable, record: ProcessRecord) -> None:
        for column, value in zip(("pid", "user", "status", "cpu", "mem", "time", "name"), self._cells(record)):
            table.update_cell(record.id, column, value)


class ProcwatchApp(App):
    """Main procwatch application."""

    TITLE = "procwatch"
    SUB_TITLE = "System & Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }

    Horizontal {
        height: auto;
    }

    #host-info {
        width: 1fr;
    }

    #usage-info {
        width: 2fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("k", "kill", "Kill"),
        ("r", "refresh_disks", "Disks"),
    ]

    def __init__(self, config: MonitorConfig = CONFIG, engine: MonitorEngine | None = None) -> None:
        """Initialize the app and subscribe to both monitoring kinds."""
        super().__init__()
        self._engine = engine if engine is not None else MonitorEngine(config)
        self._system_updates = self._engine.subscribe(MonitorKind.SYSTEM)
        self._process_updates = self._engine.subscribe(MonitorKind.PROCESS)

    @property
    def engine(self) -> MonitorEngine:
        return self._engine

    def compose(self) -> ComposeResult:
        yield HeaderStats(id="header-stats")
        yield DiskPanel(id="disk-panel")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start both monitoring sessions and poll their mailboxes."""
        self._engine.start_monitoring(MonitorKind.SYSTEM)
        self._engine.start_monitoring(MonitorKind.PROCESS)
        self.action_refresh_disks()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Apply the newest system and process snapshots, if any arrived."""
        system = self._system_updates.latest()
        if system is not None:
            self.query_one("#header-stats", HeaderStats).update_stats(system)

        records = self._process_updates.latest()
        if records is not None:
            self.query_one(ProcessTable).update_processes(records)

    def action_sort(self) -> None:
        """Cycle the process table sort key."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_refresh_disks(self) -> None:
        """Re-enumerate disks and redraw the panel."""
        self.query_one("#disk-panel", DiskPanel).update_disks(self._engine.get_all_disks())

    def action_kill(self) -> None:
        """Terminate the selected process: graceful first, forced if it persists."""
        process_id = self.query_one(ProcessTable).selected_id()
        if process_id is None:
            return
        self.run_worker(lambda: self._kill(process_id), thread=True, group="kill")

    def _kill(self, process_id: str) -> None:
        """Run the escalation in a worker thread and report the outcome."""
        try:
            escalate_termination(self._engine.executor, process_id)
        except ControlError as exc:
            logger.warning("Kill of %s failed: %s", process_id, exc)
            self.call_from_thread(self.notify, str(exc), severity="error")
            return
        self.call_from_thread(self.notify, f"Process {process_id} terminated")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._engine.shutdown()
        self.exit()

    def on_unmount(self) -> None:
        """Stop every monitoring session."""
        self._engine.shutdown()


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(prog="procwatch", description="System & process monitor")
    parser.add_argument(
        "--interval",
        type=float,
        default=CONFIG.system_interval,
        help="Sampling interval in seconds for both monitors (default: %(default)s)",
    )
    parser.add_argument("--log-file", help="Write logs to this file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level used with --log-file (default: %(default)s)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the procwatch application."""
    args = build_parser().parse_args(argv)
    # The terminal belongs to the UI, so only log when a file is given
    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=getattr(logging, args.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    config = dataclasses.replace(CONFIG, system_interval=args.interval, process_interval=args.interval)
    app = ProcwatchApp(config)
    app.run()


if __name__ == "__main__":
    main()
