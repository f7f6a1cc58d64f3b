"""Per-core CPU temperature source."""

from __future__ import annotations

import logging
import re
import subprocess

import psutil

from ..errors import SourceUnavailable
from .base import MetricSample, MetricSource

logger = logging.getLogger(__name__)

# sensor groups that report the CPU package/cores when no "Core N" labels exist
_CPU_SENSOR_GROUPS = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "cpu-thermal")

_TEMPERATURE_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_CORE_INDEX_RE = re.compile(r"(\d+)")


def normalize_temperature(raw: str) -> float:
    """Turn a raw ``sensors`` reading such as ``+45.0°C`` into ``45.0``.

    The leading plus sign and the unit are stripped; a minus sign is kept.
    Raises ``ValueError`` when *raw* holds no number.
    """
    match = _TEMPERATURE_RE.search(raw)
    if match is None:
        raise ValueError(f"no temperature in {raw!r}")
    return float(match.group(0))


def parse_sensors_output(text: str) -> list[float]:
    """Extract the ``Core N:`` readings from ``sensors`` output, in order."""
    readings: list[float] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3 or parts[0] != "Core":
            continue
        try:
            readings.append(normalize_temperature(parts[2]))
        except ValueError:
            logger.debug("Skipping unparsable sensors line %r", line)
    return readings


def _core_key(label: str) -> tuple[int, str]:
    match = _CORE_INDEX_RE.search(label)
    return (int(match.group(1)) if match else -1, label)


class TemperatureSource(MetricSource):
    """Reads per-core temperatures in degrees Celsius.

    ``backend="psutil"`` uses :func:`psutil.sensors_temperatures`;
    ``backend="sensors"`` runs the lm-sensors ``sensors`` command and parses
    its text output.
    """

    def __init__(self, backend: str = "psutil", sensors_cmd: str = "sensors", timeout: float = 10.0) -> None:
        if backend not in ("psutil", "sensors"):
            raise ValueError(f"unknown temperature backend {backend!r}")
        self._backend = backend
        self._sensors_cmd = sensors_cmd
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "temps"

    @property
    def backend(self) -> str:
        return self._backend

    def sample(self) -> MetricSample:
        if self._backend == "sensors":
            values = self._read_sensors_cmd()
        else:
            values = self._read_psutil()
        return MetricSample(values=tuple(values), decimals=1)

    def _read_psutil(self) -> list[float]:
        read = getattr(psutil, "sensors_temperatures", None)
        if read is None:
            raise SourceUnavailable("psutil does not support temperature sensors on this platform")
        try:
            groups = read()
        except (OSError, RuntimeError) as exc:
            raise SourceUnavailable(f"cannot read temperature sensors: {exc}") from exc
        if not groups:
            raise SourceUnavailable("no temperature sensors found")

        cores = [
            entry
            for entries in groups.values()
            for entry in entries
            if entry.label.startswith("Core")
        ]
        if cores:
            return [entry.current for entry in sorted(cores, key=lambda e: _core_key(e.label))]

        for group in _CPU_SENSOR_GROUPS:
            if group in groups:
                return [entry.current for entry in groups[group]]
        return []

    def _read_sensors_cmd(self) -> list[float]:
        try:
            result = subprocess.run(
                [self._sensors_cmd],
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SourceUnavailable(f"cannot run {self._sensors_cmd!r}: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise SourceUnavailable(
                f"{self._sensors_cmd!r} exited with status {result.returncode}: {stderr}"
            )
        return parse_sensors_output(result.stdout.decode("utf-8", errors="replace"))
