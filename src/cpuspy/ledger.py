"""Baseline offsets that let the user "reset" the state timers."""

import logging
from collections.abc import Iterable, Mapping

from cpuspy.models import FrequencyState, LedgerState, Snapshot
from cpuspy.sampler import StateSampler, total_duration

log = logging.getLogger(__name__)


class OffsetLedger:
    """
    Per-frequency baseline durations captured from a sampler.

    The baseline dict is replaced wholesale and never mutated in place, so
    a reader holding the old reference always sees a consistent map.
    """

    def __init__(self, sampler: StateSampler) -> None:
        """
        Initialize the OffsetLedger.

        Args:
            sampler: Sampler refreshed when a new baseline is captured.
        """
        self._sampler = sampler
        self._baseline: dict[int, int] = {}

    @property
    def state(self) -> LedgerState:
        """Whether a baseline is held."""
        return LedgerState.CAPTURED if self._baseline else LedgerState.EMPTY

    @property
    def baseline(self) -> dict[int, int]:
        """Copy of the frequency -> baseline duration map."""
        return dict(self._baseline)

    def apply(self, snapshot: Iterable[FrequencyState]) -> Snapshot:
        """
        Subtract the baseline from each entry of snapshot.

        A baseline is only subtracted when it is strictly less than the
        current duration; otherwise the entry passes through unchanged.
        Order and entry set are preserved.
        """
        baseline = self._baseline
        adjusted: list[FrequencyState] = []
        for state in snapshot:
            offset = baseline.get(state.frequency)
            if offset is not None and offset < state.duration:
                state = FrequencyState(state.frequency, state.duration - offset)
            adjusted.append(state)
        return tuple(adjusted)

    def total_adjusted(self, snapshot: Iterable[FrequencyState]) -> int:
        """
        Total duration minus the sum of every baseline value held.

        This subtracts the whole baseline even where apply() ignored an
        oversized entry, so it can differ from summing apply()'s output.
        """
        return total_duration(snapshot) - sum(self._baseline.values())

    def capture_baseline(self) -> None:
        """
        Refresh the sampler and use the new snapshot as the baseline.

        Raises:
            SourceUnavailable: If the refresh fails. The ledger is untouched.
            ParseError: If the refresh fails. The ledger is untouched.
        """
        snapshot = self._sampler.refresh()
        self._baseline = {state.frequency: state.duration for state in snapshot}
        log.info("Captured baseline for %d states", len(self._baseline))

    def clear_baseline(self) -> None:
        """Drop the baseline."""
        self._baseline = {}

    def load_baseline(self, offsets: Mapping[int, int]) -> None:
        """
        Replace the baseline with one the caller persisted earlier.

        Raises:
            ValueError: If a key or value is not a non-negative int.
        """
        baseline: dict[int, int] = {}
        for frequency, duration in offsets.items():
            for value in (frequency, duration):
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ValueError(f"invalid baseline entry {frequency!r}: {duration!r}")
            baseline[frequency] = duration
        self._baseline = baseline
