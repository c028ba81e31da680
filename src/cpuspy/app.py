"""cpuspy - Main Textual application."""

import logging
from enum import Enum
from queue import Empty, Queue

import psutil
from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static

from cpuspy.config import MonitorConfig
from cpuspy.errors import CpuStateError
from cpuspy.models import FrequencyState, Snapshot, StateReport
from cpuspy.monitor import CpuStateMonitor
from cpuspy.sampler import StateSampler, read_kernel_version
from cpuspy.store import BaselineStore

log = logging.getLogger(__name__)

BAR_WIDTH = 20
TICKS_PER_SECOND = 100


class View(Enum):
    """Which timers the table shows."""

    SINCE_RESET = "since reset"
    SINCE_BOOT = "since boot"


def format_duration(ticks: int) -> str:
    """Format centisecond ticks as H:MM:SS."""
    seconds = max(ticks, 0) // TICKS_PER_SECOND
    hours, rem = divmod(seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def format_frequency(frequency: int) -> str:
    """Format a kHz frequency as MHz, or the deep-sleep label."""
    if frequency == 0:
        return "Deep Sleep"
    return f"{frequency // 1000} MHz"


def percentage(duration: int, total: int) -> float:
    """Share of total as a percentage, 0 when total is not positive."""
    if total <= 0:
        return 0.0
    return 100.0 * duration / total


def hide_unused(states: Snapshot) -> list[FrequencyState]:
    """Drop states that have not accumulated any time."""
    return [state for state in states if state.duration > 0]


def current_frequency_mhz(cpu: int) -> float | None:
    """Current frequency of a CPU according to psutil, if known."""
    try:
        freqs = psutil.cpu_freq(percpu=True)
    except (AttributeError, NotImplementedError, OSError):
        return None
    if not freqs or cpu >= len(freqs):
        return None
    return freqs[cpu].current


class SummaryStats(Static):
    """Header widget showing totals and baseline status."""

    DEFAULT_CSS = """
    SummaryStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, kernel: str | None = None, cpu: int = 0, *args, **kwargs) -> None:
        """Initialize SummaryStats."""
        super().__init__(*args, **kwargs)
        self._kernel = kernel
        self._cpu = cpu
        self._report: StateReport | None = None
        self._view = View.SINCE_RESET

    def compose(self) -> ComposeResult:
        """Compose the summary layout."""
        yield Static(self._get_summary(), id="summary-info")

    def update_report(self, report: StateReport, view: View) -> None:
        """Update the summary from a report."""
        self._report = report
        self._view = view
        try:
            self.query_one("#summary-info", Static).update(self._get_summary())
        except NoMatches:
            pass  # Widget not mounted yet

    def _get_summary(self) -> str:
        """Get summary display."""
        lines = [f"Kernel: {escape(self._kernel or 'unknown')}"]

        report = self._report
        if report is None:
            lines.append("Loading time in state...")
            return "\n".join(lines)

        if self._view is View.SINCE_RESET:
            states, total = report.adjusted, report.total_adjusted
        else:
            states, total = report.states, report.total

        sleep = next((s.duration for s in states if s.is_deep_sleep), 0)
        lines.append(
            f"Total state time: {format_duration(total)}  "
            f"Deep sleep: {percentage(sleep, total):5.1f}%"
        )

        current = current_frequency_mhz(self._cpu)
        current_str = f"{current:.0f} MHz" if current is not None else "n/a"
        if report.baseline_active:
            baseline_str = "[yellow]timers reset[/yellow]"
        else:
            baseline_str = "[dim]since boot[/dim]"
        lines.append(
            f"CPU{self._cpu} now: {current_str}  "
            f"Baseline: {baseline_str}  View: {self._view.value}"
        )

        if report.error:
            lines.append(f"[red]{escape(report.error)}[/red]")
        return "\n".join(lines)


class StateTable(Container):
    """Container for the time-in-state table."""

    DEFAULT_CSS = """
    StateTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize StateTable."""
        super().__init__(*args, **kwargs)
        self._row_keys: list[str] = []

    @property
    def row_keys(self) -> list[str]:
        """Keys of the rows currently shown, top to bottom."""
        return list(self._row_keys)

    def compose(self) -> ComposeResult:
        """Compose the state table."""
        yield DataTable(id="state-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#state-table", DataTable)
        table.cursor_type = "row"

        table.add_column("FREQ", key="freq", width=12)
        table.add_column("TIME", key="time", width=12)
        table.add_column("%", key="percent", width=7)
        table.add_column("", key="bar", width=BAR_WIDTH)

    def update_states(self, states: list[FrequencyState], total: int) -> None:
        """
        Update the table with new durations.

        Rows are keyed by frequency. When the set of frequencies is
        unchanged only the cells are updated; otherwise the table is rebuilt
        so rows stay in snapshot order.
        """
        table = self.query_one("#state-table", DataTable)
        new_keys = [str(state.frequency) for state in states]

        if new_keys != self._row_keys:
            table.clear()
            for key, state in zip(new_keys, states):
                table.add_row(*self._cells(state, total), key=key)
            self._row_keys = new_keys
            return

        for key, state in zip(new_keys, states):
            _, time_str, percent_str, bar = self._cells(state, total)
            table.update_cell(key, "time", time_str)
            table.update_cell(key, "percent", percent_str)
            table.update_cell(key, "bar", bar)

    def _cells(self, state: FrequencyState, total: int) -> tuple[str, str, str, str]:
        share = percentage(state.duration, total)
        bar_len = min(int(share * BAR_WIDTH / 100), BAR_WIDTH)
        bar = "█" * bar_len + "░" * (BAR_WIDTH - bar_len)
        return (
            format_frequency(state.frequency),
            format_duration(state.duration),
            f"{share:5.1f}",
            bar,
        )


class CpuSpyApp(App):
    """Main cpuspy application."""

    TITLE = "cpuspy"
    SUB_TITLE = "CPU Time in State"

    CSS = """
    Screen {
        layout: vertical;
    }

    #summary-stats {
        dock: top;
        height: auto;
        min-height: 5;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("z", "reset_timers", "Reset"),
        ("u", "restore_timers", "Restore"),
        ("h", "toggle_unused", "Hide unused"),
        ("v", "toggle_view", "View"),
    ]

    def __init__(
        self,
        config: MonitorConfig | None = None,
        sampler: StateSampler | None = None,
    ) -> None:
        """
        Initialize the CpuSpyApp.

        Args:
            config: Runtime configuration. Defaults to MonitorConfig().
            sampler: Sampler to monitor. Defaults to one built from config.
        """
        super().__init__()
        self._config = config if config is not None else MonitorConfig()
        self._update_queue: Queue[StateReport] = Queue()
        if sampler is None:
            sampler = StateSampler(path=self._config.time_in_state_path)
        self._monitor = CpuStateMonitor(
            sampler, self._update_queue, poll_rate=self._config.interval
        )
        self._store = (
            BaselineStore(self._config.baseline_file)
            if self._config.baseline_file is not None
            else None
        )
        self._view = View.SINCE_RESET
        self._hide_unused = False
        self._last_report: StateReport | None = None

    @property
    def view(self) -> View:
        """Timers currently shown."""
        return self._view

    @property
    def hiding_unused(self) -> bool:
        """Whether states with no time are hidden."""
        return self._hide_unused

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield SummaryStats(
            kernel=read_kernel_version(),
            cpu=self._config.cpu,
            id="summary-stats",
        )
        yield StateTable()
        yield Footer()

    def on_mount(self) -> None:
        """Replay any saved baseline and start the monitor."""
        if self._store is not None:
            baseline = self._store.load()
            if baseline:
                self._monitor.load_baseline(baseline)
                log.info("Replayed baseline from %s", self._store.path)
        self._monitor.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for reports and refresh the UI."""
        # Drain the queue to get the most recent report
        report = None
        while True:
            try:
                report = self._update_queue.get_nowait()
            except Empty:
                break

        if report is not None:
            self._update_ui(report)

    def _update_ui(self, report: StateReport) -> None:
        """Update the UI with a new report."""
        self._last_report = report

        if self._view is View.SINCE_RESET:
            states, total = report.adjusted, report.total_adjusted
        else:
            states, total = report.states, report.total
        shown = hide_unused(states) if self._hide_unused else list(states)

        try:
            self.query_one("#summary-stats", SummaryStats).update_report(report, self._view)
            self.query_one(StateTable).update_states(shown, total)
        except NoMatches:
            log.debug("UI not mounted, dropping report")

    def _rerender(self) -> None:
        if self._last_report is not None:
            self._update_ui(self._last_report)

    def action_refresh(self) -> None:
        """Re-read the time-in-state table now."""
        report = self._monitor.poll()
        self._update_ui(report)
        if report.error:
            self.notify(escape(report.error), severity="error")

    def action_reset_timers(self) -> None:
        """Zero the displayed timers."""
        try:
            self._monitor.capture_baseline()
        except CpuStateError as exc:
            self.notify(escape(f"Reset failed: {exc}"), severity="error")
            return

        if self._store is not None:
            try:
                self._store.save(self._monitor.baseline)
            except OSError as exc:
                log.warning("Could not save baseline to %s: %s", self._store.path, exc)
                self.notify(escape(f"Baseline not saved: {exc}"), severity="warning")

        self._update_ui(self._monitor.report())
        self.notify("Timers reset")

    def action_restore_timers(self) -> None:
        """Show the since-boot timers again."""
        self._monitor.clear_baseline()
        if self._store is not None:
            try:
                self._store.clear()
            except OSError as exc:
                log.warning("Could not remove %s: %s", self._store.path, exc)
        self._update_ui(self._monitor.report())
        self.notify("Timers restored")

    def action_toggle_unused(self) -> None:
        """Hide or show states that have no time."""
        self._hide_unused = not self._hide_unused
        self._rerender()

    def action_toggle_view(self) -> None:
        """Switch between since-reset and since-boot timers."""
        self._view = View.SINCE_BOOT if self._view is View.SINCE_RESET else View.SINCE_RESET
        self._rerender()
        self.notify(f"View: {self._view.value}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()
