"""Base interface for sample sinks."""

from __future__ import annotations

import abc

from ..source.base import MetricSample


class BaseSink(abc.ABC):
    """Abstract base for sinks that receive one row per sample tick."""

    @abc.abstractmethod
    def open(self) -> None:
        """Acquire the underlying resource. Raises SinkOpenError."""

    @abc.abstractmethod
    def write(self, sample: MetricSample) -> None:
        """Persist one sample row."""

    @abc.abstractmethod
    def close(self) -> None:
        """Flush and release resources."""
