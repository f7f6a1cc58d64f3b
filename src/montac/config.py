"""Configuration loading and validation for montac."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

DEFAULT_PERIOD_US = 500_000
DEFAULT_MAX_SAMPLES = 100_000
# leaves room for the ".temps"/".clock" suffix inside PATH_MAX
MAX_PREFIX_LENGTH = 4089

TEMPERATURE_BACKENDS = ("psutil", "sensors")
CLOCK_BACKENDS = ("psutil", "cpuinfo")


@dataclass(frozen=True)
class MontacConfig:
    """Settings for one monitoring run.

    Built once before the run and handed to both collectors; never mutated.
    """

    command: str = ""
    output_prefix: str = ""
    period_us: int = DEFAULT_PERIOD_US
    verbosity: int = 1
    max_samples: int = DEFAULT_MAX_SAMPLES
    shell: str = "/bin/sh"
    temperature_source: str = "psutil"
    clock_source: str = "psutil"

    @property
    def period_seconds(self) -> float:
        return self.period_us / 1_000_000

    @property
    def temps_path(self) -> Path:
        return Path(f"{self.output_prefix}.temps")

    @property
    def clock_path(self) -> Path:
        return Path(f"{self.output_prefix}.clock")

    def validate(self) -> None:
        """Raise :class:`ConfigError` if any value is out of range."""
        if not self.command or not self.command.strip():
            raise ConfigError("workload command must not be empty")
        if "\0" in self.command:
            raise ConfigError("workload command must not contain NUL bytes")
        if not self.output_prefix:
            raise ConfigError("output prefix must not be empty")
        if len(self.output_prefix) > MAX_PREFIX_LENGTH:
            raise ConfigError(
                f"output prefix too long: {MAX_PREFIX_LENGTH} character limit"
            )
        if self.period_us < 1:
            raise ConfigError(f"sample period must be >= 1 us, got {self.period_us}")
        if self.period_seconds > threading.TIMEOUT_MAX:
            raise ConfigError(
                f"sample period too long: {self.period_us} us exceeds the platform wait limit"
            )
        if self.verbosity < 0:
            raise ConfigError(f"verbosity must be >= 0, got {self.verbosity}")
        if self.max_samples < 1:
            raise ConfigError(f"max_samples must be >= 1, got {self.max_samples}")
        if self.temperature_source not in TEMPERATURE_BACKENDS:
            raise ConfigError(f"unknown temperature source {self.temperature_source!r}")
        if self.clock_source not in CLOCK_BACKENDS:
            raise ConfigError(f"unknown clock source {self.clock_source!r}")

    def with_overrides(self, **overrides: Any) -> MontacConfig:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_INT_FIELDS = {"period_us", "verbosity", "max_samples"}

_ENV_MAP = {
    "MONTAC_COMMAND": "command",
    "MONTAC_OUTPUT_PREFIX": "output_prefix",
    "MONTAC_PERIOD_US": "period_us",
    "MONTAC_VERBOSITY": "verbosity",
    "MONTAC_MAX_SAMPLES": "max_samples",
    "MONTAC_SHELL": "shell",
    "MONTAC_TEMPERATURE_SOURCE": "temperature_source",
    "MONTAC_CLOCK_SOURCE": "clock_source",
}


def _coerce(key: str, value: Any) -> Any:
    if key in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from exc
    return str(value)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides using the MONTAC_ prefix."""
    for env_key, key in _ENV_MAP.items():
        value = os.environ.get(env_key)
        if value is not None:
            data[key] = value
    return data


def _dict_to_config(data: dict[str, Any]) -> MontacConfig:
    """Convert a raw dictionary to a MontacConfig, dropping unknown keys."""
    known = {f.name for f in fields(MontacConfig)}
    return MontacConfig(**{
        k: _coerce(k, v) for k, v in data.items()
        if k in known and v is not None
    })


def load_config(path: str | Path | None = None) -> MontacConfig:
    """Load configuration from a YAML file with environment overrides.

    Looks for ``montac.yaml`` in the current directory if *path* is None.
    A missing file yields the defaults.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path("montac.yaml")
    else:
        path = Path(path)

    if path.exists():
        try:
            with open(path, encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh)
        except OSError as exc:
            raise ConfigError(f"cannot read {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc
        if isinstance(loaded, dict):
            data = loaded

    data = _apply_env_overrides(data)
    return _dict_to_config(data)
