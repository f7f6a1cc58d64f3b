"""Base interface for host metric sources."""

from __future__ import annotations

import abc
from dataclasses import dataclass


@dataclass(frozen=True)
class MetricSample:
    """One row of readings, one value per sensor or core.

    Samples carry no timestamp: the row index in the output file times the
    sample period gives the elapsed time.
    """

    values: tuple[float, ...]
    decimals: int = 1

    def __len__(self) -> int:
        return len(self.values)

    def to_line(self) -> str:
        """Render the values joined by a single space, without newline."""
        return " ".join(f"{v:.{self.decimals}f}" for v in self.values)


class MetricSource(abc.ABC):
    """Abstract base class for a single host metric read."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Source name used in logs and output file suffixes."""

    @abc.abstractmethod
    def sample(self) -> MetricSample:
        """Read the current metric state.

        Raises :class:`~montac.errors.SourceUnavailable` when the host
        facility cannot be queried. A successful read with nothing to report
        returns an empty sample.
        """
