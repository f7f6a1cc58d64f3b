"""Host metric sources."""

from __future__ import annotations

from ..errors import ConfigError
from .base import MetricSample, MetricSource
from .clock import ClockSpeedSource
from .temperature import TemperatureSource

__all__ = [
    "ClockSpeedSource",
    "MetricSample",
    "MetricSource",
    "TemperatureSource",
    "build_source",
]


def build_source(kind: str, backend: str) -> MetricSource:
    """Create the source for *kind* (``"temps"`` or ``"clock"``) by backend name."""
    try:
        if kind == "temps":
            return TemperatureSource(backend=backend)
        if kind == "clock":
            return ClockSpeedSource(backend=backend)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    raise ConfigError(f"unknown metric source kind {kind!r}")
