"""CLI interface for montac."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from . import __version__
from .config import CLOCK_BACKENDS, TEMPERATURE_BACKENDS, MontacConfig, load_config
from .errors import ConfigError, WorkloadLaunchError
from .reader import read_metric_file
from .supervisor import RunOutcome, Supervisor

logger = logging.getLogger(__name__)

_EPILOG = """\
example:
  montac -c "make >> log" -o data

outputs to:
  data.temps   per-core temperatures (degrees C)
  data.clock   per-core clock speeds (MHz)
"""


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="montac",
        description="MONitoring of Temperatures And Clock speeds while a command runs",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", dest="command", metavar="CMD", default=None,
                        help="command to be run by the shell (quote it if it has spaces)")
    parser.add_argument("-o", dest="output_prefix", metavar="PREFIX", default=None,
                        help="prefix of output files (PREFIX.temps, PREFIX.clock)")
    parser.add_argument("-f", dest="period_us", metavar="USEC", type=_positive_int, default=None,
                        help="sample period in microseconds (default 500000)")
    parser.add_argument("-v", dest="verbosity", metavar="LEVEL", type=_non_negative_int, default=None,
                        help="how much noise to make: 0 quiet, 1 info, 2 debug (default 1)")
    parser.add_argument("--config", default=None, help="Path to montac.yaml")
    parser.add_argument("--max-samples", type=_positive_int, default=None,
                        help="stop each collector after this many samples (default 100000)")
    parser.add_argument("--shell", default=None, help="shell used to run CMD (default /bin/sh)")
    parser.add_argument("--temp-source", dest="temperature_source", choices=TEMPERATURE_BACKENDS,
                        default=None, help="temperature backend (default psutil)")
    parser.add_argument("--clock-source", dest="clock_source", choices=CLOCK_BACKENDS,
                        default=None, help="clock speed backend (default psutil)")
    parser.add_argument("--version", action="version", version=f"montac {__version__}")
    return parser


def _configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    env_level = os.environ.get("MONTAC_LOG_LEVEL")
    if env_level:
        level = logging.getLevelName(env_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _columns(path: str, period_us: int) -> str:
    try:
        rows = read_metric_file(path, period_us)
    except (OSError, ValueError):
        return "-"
    widths = sorted({len(r.values) for r in rows})
    return "/".join(str(w) for w in widths) or "0"


def _print_summary(outcome: RunOutcome, cfg: MontacConfig) -> None:
    """Pretty-print each collector's terminal state."""
    from rich.console import Console
    from rich.table import Table

    table = Table(title="montac collectors")
    table.add_column("Collector", style="green")
    table.add_column("State")
    table.add_column("Rows", justify="right")
    table.add_column("Columns", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Empty", justify="right")
    table.add_column("File", style="cyan")

    for report in outcome.collectors:
        state_style = "red" if report.failed else ""
        state = report.state.value
        table.add_row(
            report.name,
            f"[{state_style}]{state}[/{state_style}]" if state_style else state,
            str(report.stats.samples_written),
            _columns(str(report.path), cfg.period_us),
            str(report.stats.sample_failures),
            str(report.stats.empty_samples),
            str(report.path),
        )

    console = Console(stderr=True)
    console.print(table)
    if outcome.workload_exit_status is not None:
        console.print(f"workload exit status: {outcome.workload_exit_status}")


def main(argv: list[str] | None = None) -> int:
    """Entry point for the montac CLI. Returns the process exit status."""
    parser = _build_parser()
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        parser.print_usage(sys.stderr)
        return 1

    args = parser.parse_args(argv)
    try:
        cfg = load_config(args.config).with_overrides(
            command=args.command,
            output_prefix=args.output_prefix,
            period_us=args.period_us,
            verbosity=args.verbosity,
            max_samples=args.max_samples,
            shell=args.shell,
            temperature_source=args.temperature_source,
            clock_source=args.clock_source,
        )
        if not cfg.command or not cfg.output_prefix:
            raise ConfigError("both -c CMD and -o PREFIX are required")
        cfg.validate()
    except ConfigError as exc:
        parser.error(str(exc))

    _configure_logging(cfg.verbosity)

    try:
        outcome = Supervisor().run(cfg)
    except WorkloadLaunchError as exc:
        logger.error("%s", exc)
        outcome = exc.outcome
    except KeyboardInterrupt:
        logger.warning("Interrupted; collectors stopped")
        return 130

    if cfg.verbosity >= 1:
        _print_summary(outcome, cfg)
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
