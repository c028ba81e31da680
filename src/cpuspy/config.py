"""Configuration for cpuspy."""

from dataclasses import dataclass, field
from pathlib import Path

from cpuspy.sampler import SYSFS_CPU_ROOT, time_in_state_path


@dataclass
class MonitorConfig:
    """Runtime configuration for cpuspy."""

    # CPU whose time_in_state table is read
    cpu: int = 0

    # Base path to the CPU sysfs directory
    sysfs_root: Path = field(default_factory=lambda: Path(SYSFS_CPU_ROOT))

    # Explicit time_in_state file (overrides cpu and sysfs_root)
    source: Path | None = None

    # Poll interval in seconds
    interval: float = 2.0

    # JSON file the baseline is saved to and replayed from (None = not persisted)
    baseline_file: Path | None = None

    # Print one table and exit instead of starting the UI
    once: bool = False

    # Ignore the baseline in --once output
    raw: bool = False

    log_level: str = "WARNING"
    log_file: Path | None = None

    def __post_init__(self) -> None:
        self.sysfs_root = Path(self.sysfs_root)
        if self.source is not None:
            self.source = Path(self.source)
        if self.baseline_file is not None:
            self.baseline_file = Path(self.baseline_file)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)

    @property
    def time_in_state_path(self) -> Path:
        """The time_in_state file this configuration reads."""
        if self.source is not None:
            return self.source
        return time_in_state_path(self.cpu, self.sysfs_root)
