"""CPU time-in-state monitoring engine for cpuspy."""

import logging
import threading
from collections.abc import Mapping
from queue import Queue

from cpuspy.errors import CpuStateError
from cpuspy.ledger import OffsetLedger
from cpuspy.models import LedgerState, Snapshot, StateReport
from cpuspy.sampler import StateSampler, total_duration

log = logging.getLogger(__name__)


class CpuStateMonitor:
    """
    Owner of one sampler and its offset ledger.

    Every operation runs under a single lock so that callers on different
    threads never observe a half-replaced snapshot or baseline. When
    started, a daemon thread refreshes periodically and pushes a
    StateReport to the update queue after every attempt.
    """

    def __init__(
        self,
        sampler: StateSampler,
        update_queue: Queue[StateReport] | None = None,
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the CpuStateMonitor.

        Args:
            sampler: Sampler for the CPU being monitored.
            update_queue: Thread-safe queue to push reports to. Required
                for start().
            poll_rate: How often to poll (in seconds). Default 2.0s.
        """
        self._sampler = sampler
        self._ledger = OffsetLedger(sampler)
        self._lock = threading.Lock()
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_error: str | None = None
        self._error_lock = threading.Lock()

    @property
    def sampler(self) -> StateSampler:
        """The sampler owned by this monitor."""
        return self._sampler

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def ledger_state(self) -> LedgerState:
        """Whether a baseline is currently held."""
        with self._lock:
            return self._ledger.state

    @property
    def baseline(self) -> dict[int, int]:
        """Copy of the current baseline."""
        with self._lock:
            return self._ledger.baseline

    def refresh(self) -> Snapshot:
        """Re-read the sources and return the new snapshot."""
        with self._lock:
            return self._sampler.refresh()

    def current_snapshot(self) -> Snapshot:
        """Return the most recent snapshot without reading the sources."""
        with self._lock:
            return self._sampler.current_snapshot()

    @staticmethod
    def total_duration(snapshot: Snapshot) -> int:
        """Sum of all durations in snapshot, deep sleep included."""
        return total_duration(snapshot)

    def apply(self, snapshot: Snapshot) -> Snapshot:
        """Return snapshot with the baseline subtracted."""
        with self._lock:
            return self._ledger.apply(snapshot)

    def total_adjusted(self, snapshot: Snapshot) -> int:
        """Total duration of snapshot minus the whole baseline."""
        with self._lock:
            return self._ledger.total_adjusted(snapshot)

    def capture_baseline(self) -> None:
        """Refresh and zero the displayed timers."""
        with self._lock:
            self._ledger.capture_baseline()

    def clear_baseline(self) -> None:
        """Restore the since-boot timers."""
        with self._lock:
            self._ledger.clear_baseline()

    def load_baseline(self, offsets: Mapping[int, int]) -> None:
        """Replay a previously persisted baseline."""
        with self._lock:
            self._ledger.load_baseline(offsets)

    def report(self, error: str | None = None) -> StateReport:
        """Build a report from the current snapshot and baseline."""
        with self._lock:
            states = self._sampler.current_snapshot()
            return StateReport(
                states=states,
                adjusted=self._ledger.apply(states),
                total=total_duration(states),
                total_adjusted=self._ledger.total_adjusted(states),
                baseline_active=self._ledger.state is LedgerState.CAPTURED,
                error=error,
            )

    def poll(self) -> StateReport:
        """
        Refresh once and return a report.

        Read failures are logged and carried in the report's error field;
        the previous snapshot is reported unchanged.
        """
        try:
            self.refresh()
        except CpuStateError as exc:
            message = str(exc)
            with self._error_lock:
                if message != self._last_error:
                    log.warning("Refresh failed: %s", message)
                self._last_error = message
            return self.report(error=message)

        with self._error_lock:
            if self._last_error is not None:
                log.info("Refresh recovered")
                self._last_error = None
        return self.report()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self._queue is None:
            raise RuntimeError("start() needs an update queue")
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="CpuStateMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.poll())
            except Exception:
                log.exception("Unexpected error in poll loop")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)
