"""Boot clock readings used to derive deep-sleep time."""

import time
from dataclasses import dataclass

import psutil

_NS_PER_MS = 1_000_000


@dataclass(slots=True, frozen=True)
class BootTimes:
    """Elapsed and active time since boot, both in milliseconds."""

    elapsed_ms: int  # Includes time spent suspended
    active_ms: int  # Excludes time spent suspended

    @property
    def asleep_ms(self) -> int:
        """Milliseconds spent suspended since boot."""
        return self.elapsed_ms - self.active_ms


class BootClock:
    """
    Read time since boot with and without suspend.

    On Linux CLOCK_BOOTTIME keeps counting through suspend while
    CLOCK_MONOTONIC stops, so their difference is the time spent asleep.
    Platforms without CLOCK_BOOTTIME fall back to psutil's boot time
    against the monotonic clock.
    """

    def __init__(self) -> None:
        """Initialize the BootClock."""
        self._boottime_id: int | None = getattr(time, "CLOCK_BOOTTIME", None)

    @property
    def has_boottime(self) -> bool:
        """Whether the kernel boot clock is available."""
        return self._boottime_id is not None

    def read(self) -> BootTimes:
        """Read both clocks back to back."""
        if self._boottime_id is not None:
            elapsed_ns = time.clock_gettime_ns(self._boottime_id)
            active_ns = time.monotonic_ns()
            return BootTimes(
                elapsed_ms=elapsed_ns // _NS_PER_MS,
                active_ms=active_ns // _NS_PER_MS,
            )

        elapsed_ms = int((time.time() - psutil.boot_time()) * 1000)
        active_ms = time.monotonic_ns() // _NS_PER_MS
        return BootTimes(elapsed_ms=elapsed_ms, active_ms=active_ms)

    def __call__(self) -> BootTimes:
        return self.read()
