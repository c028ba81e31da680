"""Command-line interface for cpuspy."""

import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

from cpuspy.app import CpuSpyApp, format_duration, format_frequency, percentage
from cpuspy.config import MonitorConfig
from cpuspy.errors import CpuStateError
from cpuspy.monitor import CpuStateMonitor
from cpuspy.sampler import SYSFS_CPU_ROOT, StateSampler
from cpuspy.store import BaselineStore

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cpuspy",
        description="Show how long a CPU has spent at each clock frequency",
    )
    parser.add_argument(
        "-c",
        "--cpu",
        type=int,
        default=0,
        help="CPU whose time_in_state table is read (default: 0)",
    )
    parser.add_argument(
        "--sysfs-root",
        type=Path,
        default=Path(SYSFS_CPU_ROOT),
        help=f"CPU sysfs directory (default: {SYSFS_CPU_ROOT})",
    )
    parser.add_argument(
        "--source",
        type=Path,
        default=None,
        help="Explicit time_in_state file (overrides --cpu and --sysfs-root)",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=2.0,
        help="Refresh interval in seconds (default: 2.0)",
    )
    parser.add_argument(
        "--baseline-file",
        type=Path,
        default=None,
        help="Save the reset baseline here and replay it on startup",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print the table once and exit",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="With --once, ignore the saved baseline",
    )
    parser.add_argument(
        "--list-cpus",
        action="store_true",
        help="List CPUs with time_in_state statistics and exit",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write log output to this file",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> tuple[MonitorConfig, bool]:
    """Parse command-line arguments into a MonitorConfig and the --list-cpus flag."""
    args = build_parser().parse_args(argv)
    config = MonitorConfig(
        cpu=args.cpu,
        sysfs_root=args.sysfs_root,
        source=args.source,
        interval=args.interval,
        baseline_file=args.baseline_file,
        once=args.once,
        raw=args.raw,
        log_level=args.log_level,
        log_file=args.log_file,
    )
    return config, args.list_cpus


def configure_logging(config: MonitorConfig) -> None:
    """Send log records to the configured file, or stderr in --once mode."""
    if config.log_file is not None:
        logging.basicConfig(
            filename=config.log_file,
            level=config.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    elif config.once:
        logging.basicConfig(level=config.log_level, format="%(levelname)s: %(message)s")
    else:
        # The terminal belongs to the UI
        logging.getLogger().addHandler(logging.NullHandler())
        logging.getLogger().setLevel(config.log_level)


def print_table(config: MonitorConfig, sampler: StateSampler, out: TextIO | None = None) -> None:
    """
    Refresh once and print the time-in-state table.

    Raises:
        CpuStateError: If the table cannot be read.
    """
    out = out if out is not None else sys.stdout
    monitor = CpuStateMonitor(sampler)
    if config.baseline_file is not None and not config.raw:
        baseline = BaselineStore(config.baseline_file).load()
        if baseline:
            monitor.load_baseline(baseline)

    states = monitor.refresh()
    if config.raw:
        shown, total = states, monitor.total_duration(states)
    else:
        shown, total = monitor.apply(states), monitor.total_adjusted(states)

    for state in shown:
        out.write(
            f"{format_frequency(state.frequency):>12}  "
            f"{format_duration(state.duration):>10}  "
            f"{percentage(state.duration, total):5.1f}%\n"
        )
    out.write(f"{'Total':>12}  {format_duration(total):>10}\n")


def main(argv: list[str] | None = None) -> None:
    """Entry point for cpuspy."""
    config, list_cpus = parse_args(argv)
    configure_logging(config)

    if list_cpus:
        for cpu in StateSampler.discover_cpus(config.sysfs_root):
            print(cpu)
        return

    if config.once:
        try:
            print_table(config, StateSampler(path=config.time_in_state_path))
        except CpuStateError as exc:
            print(f"cpuspy: {exc}", file=sys.stderr)
            sys.exit(1)
        return

    log.info("Starting UI for %s", config.time_in_state_path)
    CpuSpyApp(config).run()


if __name__ == "__main__":
    main()
