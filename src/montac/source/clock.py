"""Per-core CPU clock frequency source."""

from __future__ import annotations

import logging
from pathlib import Path

import psutil

from ..errors import SourceUnavailable
from .base import MetricSample, MetricSource

logger = logging.getLogger(__name__)

CPUINFO_PATH = Path("/proc/cpuinfo")


def parse_cpuinfo(text: str) -> list[float]:
    """Return the ``cpu MHz`` value of every processor block, in order."""
    speeds: list[float] = []
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep or key.strip() != "cpu MHz":
            continue
        try:
            speeds.append(float(value.strip()))
        except ValueError:
            logger.debug("Skipping unparsable cpuinfo line %r", line)
    return speeds


class ClockSpeedSource(MetricSource):
    """Reads the current clock frequency in MHz of every logical core.

    ``backend="psutil"`` uses :func:`psutil.cpu_freq`; ``backend="cpuinfo"``
    parses ``/proc/cpuinfo`` directly.
    """

    def __init__(self, backend: str = "psutil", cpuinfo_path: str | Path = CPUINFO_PATH) -> None:
        if backend not in ("psutil", "cpuinfo"):
            raise ValueError(f"unknown clock backend {backend!r}")
        self._backend = backend
        self._cpuinfo_path = Path(cpuinfo_path)

    @property
    def name(self) -> str:
        return "clock"

    @property
    def backend(self) -> str:
        return self._backend

    def sample(self) -> MetricSample:
        if self._backend == "cpuinfo":
            values = self._read_cpuinfo()
        else:
            values = self._read_psutil()
        return MetricSample(values=tuple(values), decimals=3)

    def _read_psutil(self) -> list[float]:
        try:
            freqs = psutil.cpu_freq(percpu=True)
        except (OSError, NotImplementedError, RuntimeError) as exc:
            raise SourceUnavailable(f"cannot read cpu frequencies: {exc}") from exc
        if freqs is None:
            raise SourceUnavailable("psutil does not report cpu frequencies on this platform")
        return [f.current for f in freqs]

    def _read_cpuinfo(self) -> list[float]:
        try:
            text = self._cpuinfo_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise SourceUnavailable(f"cannot read {self._cpuinfo_path}: {exc}") from exc
        return parse_cpuinfo(text)
