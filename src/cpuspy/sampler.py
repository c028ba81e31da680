"""Time-in-state sampling for one CPU.

Reads the cpufreq ``stats/time_in_state`` table (one ``"<kHz> <ticks>"``
line per frequency, ticks in centiseconds), appends a synthetic deep-sleep
entry derived from the boot clocks, and sorts the result descending by
frequency.
"""

import logging
from collections.abc import Callable, Iterable
from operator import attrgetter
from pathlib import Path

from cpuspy.clock import BootClock, BootTimes
from cpuspy.errors import ParseError, SourceUnavailable
from cpuspy.models import DEEP_SLEEP, FrequencyState, Snapshot

log = logging.getLogger(__name__)

SYSFS_CPU_ROOT = "/sys/devices/system/cpu"
VERSION_PATH = "/proc/version"

# Boot clocks count milliseconds, the kernel table counts centiseconds
MS_PER_TICK = 10

_by_frequency = attrgetter("frequency")


def time_in_state_path(cpu: int, sysfs_root: str | Path = SYSFS_CPU_ROOT) -> Path:
    """Return the time_in_state file for a CPU index."""
    return Path(sysfs_root) / f"cpu{cpu}" / "cpufreq" / "stats" / "time_in_state"


def _parse_count(token: str, line_number: int, line: str) -> int:
    # int() would also accept signs, underscores and non-ASCII digits
    if not (token.isascii() and token.isdigit()):
        raise ParseError(line_number, line, f"not a non-negative integer: {token!r}")
    return int(token)


def parse_time_in_state(text: str) -> list[FrequencyState]:
    """
    Parse the body of a time_in_state file.

    Blank lines are skipped. Any other line must hold exactly two
    non-negative integers; the first malformed line aborts the whole parse.
    Lines with frequency 0 are dropped, since that frequency is reserved for
    deep sleep. A frequency repeated on a later line keeps the last value.

    Raises:
        ParseError: On a malformed line.
    """
    durations: dict[int, int] = {}

    for line_number, line in enumerate(text.splitlines(), start=1):
        fields = line.split()
        if not fields:
            continue
        if len(fields) != 2:
            raise ParseError(line_number, line, f"expected 2 fields, got {len(fields)}")

        frequency = _parse_count(fields[0], line_number, line)
        duration = _parse_count(fields[1], line_number, line)

        if frequency == DEEP_SLEEP:
            log.debug("Dropping line %d: frequency 0 is reserved for deep sleep", line_number)
            continue
        if frequency in durations:
            log.debug("Line %d repeats frequency %d, keeping last value", line_number, frequency)

        durations[frequency] = duration

    return [FrequencyState(frequency=f, duration=d) for f, d in durations.items()]


def sleep_ticks(times: BootTimes) -> int:
    """Convert time spent suspended into table ticks, truncating toward zero."""
    asleep = times.asleep_ms
    if asleep < 0:
        # Only possible with the psutil fallback clock
        log.debug("Boot clock reported negative sleep time (%d ms)", asleep)
        return 0
    return asleep // MS_PER_TICK


def total_duration(snapshot: Iterable[FrequencyState]) -> int:
    """Sum of all durations, deep sleep included."""
    return sum(state.duration for state in snapshot)


def read_kernel_version(path: str | Path = VERSION_PATH) -> str | None:
    """Return the first line of /proc/version, or None if unreadable."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.readline().strip() or None
    except OSError:
        return None


class StateSampler:
    """
    Produce time-in-state snapshots for a single CPU.

    The stored snapshot is only replaced after a complete, successful read,
    so a failed refresh never leaves a partial result behind.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        cpu: int = 0,
        sysfs_root: str | Path = SYSFS_CPU_ROOT,
        clock: Callable[[], BootTimes] | None = None,
    ) -> None:
        """
        Initialize the StateSampler.

        Args:
            path: Explicit time_in_state file. Overrides cpu and sysfs_root.
            cpu: CPU index whose table is read.
            sysfs_root: Base path to the CPU sysfs directory.
            clock: Callable returning BootTimes. Defaults to BootClock().
        """
        self._path = Path(path) if path is not None else time_in_state_path(cpu, sysfs_root)
        self._clock = clock if clock is not None else BootClock()
        self._snapshot: Snapshot = ()

    @property
    def path(self) -> Path:
        """The time_in_state file being sampled."""
        return self._path

    @classmethod
    def discover_cpus(cls, sysfs_root: str | Path = SYSFS_CPU_ROOT) -> list[int]:
        """
        Discover CPU indices that expose cpufreq time_in_state statistics.

        Args:
            sysfs_root: Base path to the CPU sysfs directory.

        Returns:
            Sorted list of CPU indices.
        """
        root = Path(sysfs_root)
        indices: list[int] = []

        if not root.is_dir():
            return indices

        for entry in root.iterdir():
            if not entry.is_dir() or not entry.name.startswith("cpu"):
                continue
            suffix = entry.name[3:]
            if not suffix.isdigit():
                continue
            if time_in_state_path(int(suffix), root).exists():
                indices.append(int(suffix))

        return sorted(indices)

    def _read_table(self) -> str:
        try:
            return self._path.read_text(encoding="ascii")
        except UnicodeDecodeError as exc:
            raise ParseError(0, "", f"undecodable content ({exc.reason})") from exc
        except OSError as exc:
            raise SourceUnavailable(str(self._path), exc.strerror or str(exc)) from exc

    def _read_clock(self) -> BootTimes:
        try:
            return self._clock()
        except OSError as exc:
            raise SourceUnavailable("boot clock", exc.strerror or str(exc)) from exc

    def refresh(self) -> Snapshot:
        """
        Read both sources and publish a new snapshot.

        Returns:
            The new snapshot, descending by frequency with deep sleep last.

        Raises:
            SourceUnavailable: If the table or the boot clock cannot be read.
            ParseError: If the table is malformed.
        """
        states = parse_time_in_state(self._read_table())
        sleep = sleep_ticks(self._read_clock())
        states.append(FrequencyState(frequency=DEEP_SLEEP, duration=sleep))

        snapshot: Snapshot = tuple(sorted(states, key=_by_frequency, reverse=True))
        self._snapshot = snapshot

        log.debug(
            "Read %d states from %s (deep sleep %d ticks)",
            len(snapshot) - 1,
            self._path,
            sleep,
        )
        return snapshot

    def current_snapshot(self) -> Snapshot:
        """Return the last successful snapshot, or () before the first refresh."""
        return self._snapshot

    @staticmethod
    def total_duration(snapshot: Iterable[FrequencyState]) -> int:
        """Sum of all durations in snapshot, deep sleep included."""
        return total_duration(snapshot)
