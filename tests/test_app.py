"""Tests for the procwatch Textual application."""

import subprocess
import sys

import psutil
import pytest
from textual.widgets import DataTable

from procwatch.app import DiskPanel, HeaderStats, ProcessTable, ProcwatchApp, SortKey, build_parser, usage_bar
from procwatch.config import MonitorConfig
from procwatch.models import DiskSnapshot, ProcessRecord, ProcessStatus, SystemSnapshot
from procwatch.units import bytes_to_normalized, parse_size

FAST = MonitorConfig(system_interval=0.2, process_interval=0.2)


def make_record(pid: int, cpu: float = 0.0, owner: str = "user", rss: int = 1024000) -> ProcessRecord:
    return ProcessRecord(
        id=str(pid),
        name=f"test{pid}",
        owner=owner,
        running_time="00 day(s) 00 hr(s) 00 min(s) 05 sec(s)",
        memory=bytes_to_normalized(rss),
        status=ProcessStatus.RUNNING,
        cpu_percent=cpu,
        memory_bytes=rss,
    )


def test_usage_bar_width():
    """Test usage_bar always renders the full width."""
    assert usage_bar(0.0, "green").count("░") == 20
    assert usage_bar(100.0, "green").count("█") == 20
    assert usage_bar(250.0, "green").count("█") == 20
    assert usage_bar(50.0, "green", width=10).count("█") == 5


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.interval == 1.0
    assert args.log_file is None
    assert args.log_level == "INFO"


class TestSortKey:
    """Tests for SortKey enum."""

    def test_sort_key_members(self):
        assert [key.value for key in SortKey] == ["cpu", "mem", "pid", "user"]


@pytest.mark.asyncio
async def test_app_creation():
    """Test ProcwatchApp can be instantiated."""
    app = ProcwatchApp(FAST)
    assert app.title == "procwatch"
    assert app.sub_title == "System & Process Monitor"
    assert app.engine is not None


@pytest.mark.asyncio
async def test_app_compose():
    """Test ProcwatchApp composes correctly and starts both monitors."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#header-stats") is not None
        assert pilot.app.query_one("#disk-panel") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert app.engine.is_monitoring("system")
        assert app.engine.is_monitoring("process")


@pytest.mark.asyncio
async def test_app_quit_binding():
    """Test that 'q' stops the engine and quits."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert not app.engine.is_monitoring("system")
        assert not app.engine.is_monitoring("process")


@pytest.mark.asyncio
async def test_process_table_cycle_sort():
    """Test ProcessTable sort key cycling via F6."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        process_table = pilot.app.query_one(ProcessTable)
        assert process_table.sort_key == SortKey.CPU

        await pilot.press("f6")
        assert process_table.sort_key == SortKey.MEM

        process_table.cycle_sort()
        process_table.cycle_sort()
        assert process_table.sort_key == SortKey.USER

        process_table.cycle_sort()
        assert process_table.sort_key == SortKey.CPU


@pytest.mark.asyncio
async def test_process_table_removes_old_processes():
    """Test ProcessTable drops rows for processes missing from the new list."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        app.engine.stop_monitoring("process")
        app._process_updates.latest()
        process_table = pilot.app.query_one(ProcessTable)

        process_table.update_processes((make_record(100, cpu=10.0), make_record(200, cpu=20.0)))
        assert process_table.current_ids == {"100", "200"}
        assert process_table.selected_id() in {"100", "200"}

        process_table.update_processes((make_record(200, cpu=25.0),))
        assert process_table.current_ids == {"200"}
        assert process_table.selected_id() == "200"


@pytest.mark.asyncio
async def test_app_receives_updates_from_engine():
    """Test that the app renders snapshots published by the engine."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        await pilot.pause(2)

        header = pilot.app.query_one("#header-stats", HeaderStats)
        assert header.snapshot is not None
        assert len(pilot.app.query_one(ProcessTable).current_ids) > 0


@pytest.mark.asyncio
async def test_header_and_disk_updates():
    """Test that header stats and the disk panel accept snapshots."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        app.engine.stop_monitoring("system")
        app._system_updates.latest()
        header = pilot.app.query_one("#header-stats", HeaderStats)
        snapshot = SystemSnapshot(
            hostname="box",
            os_name="testos",
            cpu_arch="x86_64",
            cpu_count=2,
            cpu_percent=42.0,
            total_memory=bytes_to_normalized(16 * 1024**3),
            used_memory=bytes_to_normalized(8 * 1024**3),
            memory_total_bytes=16 * 1024**3,
            memory_used_bytes=8 * 1024**3,
        )
        header.update_stats(snapshot)
        assert header.snapshot is snapshot

        panel = pilot.app.query_one("#disk-panel", DiskPanel)
        disk = DiskSnapshot("/dev/sda1", "/", parse_size("500.0 GB"), parse_size("250.0 GB"))
        panel.update_disks((disk,))
        assert panel.disks == (disk,)


@pytest.mark.asyncio
async def test_cycle_sort_reorders_existing_rows():
    """Test that changing the sort key re-orders rows already in the table."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        app.engine.stop_monitoring("process")
        app._process_updates.latest()
        process_table = pilot.app.query_one(ProcessTable)
        table = process_table.query_one("#process-table", DataTable)
        records = (make_record(100, cpu=10.0), make_record(200, cpu=20.0))

        process_table.update_processes(records)
        assert [table.get_row_at(i)[0] for i in range(table.row_count)] == ["200", "100"]

        process_table.cycle_sort()  # MEM
        process_table.cycle_sort()  # PID, ascending
        assert process_table.sort_key == SortKey.PID
        assert [table.get_row_at(i)[0] for i in range(table.row_count)] == ["100", "200"]

        process_table.update_processes(records)
        assert process_table.row_order == ["100", "200"]
        assert [table.get_row_at(i)[0] for i in range(table.row_count)] == ["100", "200"]


@pytest.mark.asyncio
async def test_changed_values_reorder_rows_and_keep_selection():
    """Test that a shifted CPU value moves the row and the cursor follows it."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        app.engine.stop_monitoring("process")
        app._process_updates.latest()
        process_table = pilot.app.query_one(ProcessTable)
        table = process_table.query_one("#process-table", DataTable)

        process_table.update_processes((make_record(100, cpu=10.0), make_record(200, cpu=20.0)))
        assert process_table.selected_id() == "200"

        process_table.update_processes((make_record(100, cpu=30.0), make_record(200, cpu=5.0)))
        assert [table.get_row_at(i)[0] for i in range(table.row_count)] == ["100", "200"]
        assert process_table.selected_id() == "200"


@pytest.fixture
def sleeper():
    """A child process that sleeps until it is killed."""
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    yield child
    if child.poll() is None:
        child.kill()
    child.wait(timeout=5)


@pytest.mark.asyncio
async def test_kill_binding_terminates_selected_process(sleeper):
    """Test that 'k' terminates the process under the cursor."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        app.engine.stop_monitoring("process")
        app._process_updates.latest()
        process_table = pilot.app.query_one(ProcessTable)
        process_table.update_processes((make_record(sleeper.pid),))
        assert process_table.selected_id() == str(sleeper.pid)

        await pilot.press("k")
        await app.workers.wait_for_complete()
        await pilot.pause()

        # Raises TimeoutExpired if the child survived
        sleeper.wait(timeout=5)


@pytest.mark.asyncio
async def test_kill_binding_reports_control_errors():
    """Test that a failed kill is shown as an error notification."""
    missing = 999_999
    while psutil.pid_exists(missing):
        missing += 1

    app = ProcwatchApp(FAST)
    notes = []
    async with app.run_test() as pilot:
        app.notify = lambda message, **kwargs: notes.append((message, kwargs))
        app.engine.stop_monitoring("process")
        app._process_updates.latest()
        pilot.app.query_one(ProcessTable).update_processes((make_record(missing),))

        await pilot.press("k")
        await app.workers.wait_for_complete()
        await pilot.pause()

    errors = [message for message, kwargs in notes if kwargs.get("severity") == "error"]
    assert len(errors) == 1
    assert str(missing) in errors[0]


@pytest.mark.asyncio
async def test_kill_with_empty_table_does_nothing():
    """Test that 'k' without a selected row starts no worker."""
    app = ProcwatchApp(FAST)
    async with app.run_test() as pilot:
        app.engine.stop_monitoring("process")
        app._process_updates.latest()
        pilot.app.query_one(ProcessTable).update_processes(())

        await pilot.press("k")
        assert len(app.workers) == 0
