"""Data models for cpuspy."""

from dataclasses import dataclass
from enum import Enum

# Reserved frequency for the synthetic deep-sleep bucket
DEEP_SLEEP = 0


@dataclass(slots=True, frozen=True)
class FrequencyState:
    """Immutable residency at one clock frequency."""

    frequency: int  # kHz, or DEEP_SLEEP
    duration: int  # Ticks (centiseconds for the kernel table)

    @property
    def is_deep_sleep(self) -> bool:
        """True for the synthetic deep-sleep entry."""
        return self.frequency == DEEP_SLEEP


# Ordered descending by frequency, deep sleep last
Snapshot = tuple[FrequencyState, ...]


class LedgerState(Enum):
    """Whether the offset ledger currently holds a baseline."""

    EMPTY = "empty"
    CAPTURED = "captured"


@dataclass(slots=True, frozen=True)
class StateReport:
    """Everything the UI needs from one poll."""

    states: Snapshot
    adjusted: Snapshot
    total: int
    total_adjusted: int
    baseline_active: bool
    error: str | None = None
