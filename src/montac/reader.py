"""Read montac output files back into rows."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class MetricRow:
    """One line of a ``.temps`` or ``.clock`` file."""

    index: int
    elapsed_seconds: float
    values: list[float]


def parse_metric_lines(lines: list[str], period_us: int) -> list[MetricRow]:
    """Parse output lines; the row index times the period gives elapsed time.

    Blank lines are skipped without consuming an index.
    """
    period = period_us / 1_000_000
    rows: list[MetricRow] = []
    for line in lines:
        tokens = line.split()
        if not tokens:
            continue
        index = len(rows)
        rows.append(MetricRow(
            index=index,
            elapsed_seconds=index * period,
            values=[float(t) for t in tokens],
        ))
    return rows


def read_metric_file(path: str | Path, period_us: int) -> list[MetricRow]:
    """Load every row of a montac output file.

    Raises ``ValueError`` on a non-numeric token.
    """
    with open(path, encoding="utf-8") as fh:
        return parse_metric_lines(fh.readlines(), period_us)
