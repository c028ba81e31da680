"""Shared fixtures for cpuspy tests."""

from pathlib import Path

import pytest

from cpuspy.clock import BootTimes
from cpuspy.sampler import StateSampler

TABLE = "1000000 500\n500000 300\n"


class FakeClock:
    """Settable stand-in for BootClock."""

    def __init__(self, elapsed_ms: int = 10000, active_ms: int = 9000) -> None:
        self.elapsed_ms = elapsed_ms
        self.active_ms = active_ms
        self.fail = False

    def __call__(self) -> BootTimes:
        if self.fail:
            raise OSError(22, "Invalid argument")
        return BootTimes(elapsed_ms=self.elapsed_ms, active_ms=self.active_ms)


@pytest.fixture()
def fake_sysfs(tmp_path: Path) -> Path:
    """Create a fake /sys/devices/system/cpu tree with time_in_state stats."""
    for i in range(2):
        stats = tmp_path / f"cpu{i}" / "cpufreq" / "stats"
        stats.mkdir(parents=True)
        (stats / "time_in_state").write_text(TABLE)

    # cpu2 has cpufreq but no stats
    (tmp_path / "cpu2" / "cpufreq").mkdir(parents=True)

    # Non-cpu entries should be ignored
    (tmp_path / "cpufreq").mkdir()
    (tmp_path / "cpuidle").mkdir()

    return tmp_path


@pytest.fixture()
def table_path(fake_sysfs: Path) -> Path:
    """The time_in_state file of cpu0 in the fake tree."""
    return fake_sysfs / "cpu0" / "cpufreq" / "stats" / "time_in_state"


@pytest.fixture()
def clock() -> FakeClock:
    """A clock reporting 1000 ms of sleep (100 ticks)."""
    return FakeClock()


@pytest.fixture()
def sampler(table_path: Path, clock: FakeClock) -> StateSampler:
    """A sampler over the fake cpu0 table and fake clock."""
    return StateSampler(path=table_path, clock=clock)
