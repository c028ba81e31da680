"""Tests for cpuspy application."""

from pathlib import Path
from types import SimpleNamespace

import pytest

from cpuspy.app import (
    CpuSpyApp,
    StateTable,
    View,
    current_frequency_mhz,
    format_duration,
    format_frequency,
    hide_unused,
    percentage,
)
from cpuspy.config import MonitorConfig
from cpuspy.models import FrequencyState, LedgerState
from cpuspy.sampler import StateSampler
from cpuspy.store import BaselineStore


def test_format_duration():
    """Test format_duration converts centiseconds to H:MM:SS."""
    assert format_duration(0) == "0:00:00"
    assert format_duration(6150) == "0:01:01"
    assert format_duration(100 * 3600 * 27) == "27:00:00"


def test_format_duration_negative():
    """Test format_duration never shows a negative time."""
    assert format_duration(-500) == "0:00:00"


def test_format_frequency():
    """Test format_frequency shows MHz and the deep-sleep label."""
    assert format_frequency(1000000) == "1000 MHz"
    assert format_frequency(0) == "Deep Sleep"


def test_percentage():
    """Test percentage handles a non-positive total."""
    assert percentage(50, 200) == 25.0
    assert percentage(50, 0) == 0.0
    assert percentage(50, -10) == 0.0


def test_hide_unused():
    """Test hide_unused drops zero-duration states."""
    states = (FrequencyState(2, 0), FrequencyState(1, 5), FrequencyState(0, 0))
    assert hide_unused(states) == [FrequencyState(1, 5)]


def test_current_frequency_unknown_cpu(monkeypatch: pytest.MonkeyPatch):
    """Test a CPU index psutil does not report gives no frequency."""
    freqs = [SimpleNamespace(current=1800.0), SimpleNamespace(current=2400.0)]
    monkeypatch.setattr("cpuspy.app.psutil.cpu_freq", lambda percpu=False: freqs)

    assert current_frequency_mhz(1) == 2400.0
    assert current_frequency_mhz(5) is None


def test_current_frequency_unavailable(monkeypatch: pytest.MonkeyPatch):
    """Test an empty psutil result gives no frequency."""
    monkeypatch.setattr("cpuspy.app.psutil.cpu_freq", lambda percpu=False: [])
    assert current_frequency_mhz(0) is None


@pytest.fixture()
def config(table_path: Path, tmp_path: Path) -> MonitorConfig:
    """Config pointing at the fake table with a baseline file."""
    return MonitorConfig(source=table_path, interval=0.1, baseline_file=tmp_path / "baseline.json")


@pytest.mark.asyncio
async def test_app_creation(config: MonitorConfig, sampler: StateSampler):
    """Test CpuSpyApp can be instantiated."""
    app = CpuSpyApp(config, sampler=sampler)
    assert app.title == "cpuspy"
    assert app.sub_title == "CPU Time in State"
    assert app.view is View.SINCE_RESET
    assert not app.hiding_unused


@pytest.mark.asyncio
async def test_app_compose(config: MonitorConfig, sampler: StateSampler):
    """Test CpuSpyApp composes correctly."""
    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#summary-stats") is not None
        assert pilot.app.query_one("#state-table") is not None


@pytest.mark.asyncio
async def test_app_refresh_binding(config: MonitorConfig, sampler: StateSampler):
    """Test that 'r' fills the table in snapshot order."""
    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.press("r")
        await pilot.pause()

        table = pilot.app.query_one(StateTable)
        assert table.row_keys == ["1000000", "500000", "0"]


@pytest.mark.asyncio
async def test_app_reset_and_restore(config: MonitorConfig, sampler: StateSampler):
    """Test 'z' captures and saves a baseline and 'u' removes it."""
    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.press("z")
        await pilot.pause()

        assert app._monitor.ledger_state is LedgerState.CAPTURED
        assert BaselineStore(config.baseline_file).load() == {1000000: 500, 500000: 300, 0: 100}

        await pilot.press("u")
        await pilot.pause()

        assert app._monitor.ledger_state is LedgerState.EMPTY
        assert not config.baseline_file.exists()


@pytest.mark.asyncio
async def test_app_replays_saved_baseline(config: MonitorConfig, sampler: StateSampler):
    """Test a saved baseline is loaded on mount."""
    BaselineStore(config.baseline_file).save({1000000: 100})

    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert pilot.app._monitor.baseline == {1000000: 100}


@pytest.mark.asyncio
async def test_app_reset_failure_does_not_crash(
    config: MonitorConfig, sampler: StateSampler, table_path: Path
):
    """Test a failed reset leaves the app running without a baseline."""
    table_path.unlink()

    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.press("z")
        await pilot.pause()

        assert pilot.app._monitor.ledger_state is LedgerState.EMPTY
        assert not config.baseline_file.exists()
        assert not pilot.app._exit


@pytest.mark.asyncio
async def test_app_hide_unused_binding(
    config: MonitorConfig, sampler: StateSampler, table_path: Path
):
    """Test that 'h' hides states with no time."""
    table_path.write_text("1000000 500\n500000 0\n")

    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.press("r")
        await pilot.press("h")
        await pilot.pause()

        assert pilot.app.hiding_unused
        assert pilot.app.query_one(StateTable).row_keys == ["1000000", "0"]

        await pilot.press("h")
        await pilot.pause()
        assert pilot.app.query_one(StateTable).row_keys == ["1000000", "500000", "0"]


@pytest.mark.asyncio
async def test_app_view_binding(config: MonitorConfig, sampler: StateSampler):
    """Test that 'v' toggles between since-reset and since-boot views."""
    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.press("v")
        assert pilot.app.view is View.SINCE_BOOT

        await pilot.press("v")
        assert pilot.app.view is View.SINCE_RESET


@pytest.mark.asyncio
async def test_app_quit_binding(config: MonitorConfig, sampler: StateSampler):
    """Test that 'q' binding triggers quit and stops the monitor."""
    app = CpuSpyApp(config, sampler=sampler)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert pilot.app._exit
        assert not pilot.app._monitor.is_running
