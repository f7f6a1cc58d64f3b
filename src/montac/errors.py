"""Exception types raised by montac."""

from __future__ import annotations

from typing import Any


class MontacError(Exception):
    """Base class for all montac errors."""


class ConfigError(MontacError):
    """Invalid or missing configuration values."""


class InvalidPeriod(ConfigError, ValueError):
    """Sample period is zero or negative."""


class InvalidState(MontacError):
    """Operation not allowed in the collector's current state."""


class SinkOpenError(MontacError):
    """An output sink could not be created or truncated."""


class SourceUnavailable(MontacError):
    """The host facility behind a metric source cannot be queried."""


class WorkloadLaunchError(MontacError):
    """The workload command could not be started.

    ``outcome`` holds the :class:`~montac.supervisor.RunOutcome` gathered
    after the collectors were joined.
    """

    def __init__(self, message: str, outcome: Any = None) -> None:
        super().__init__(message)
        self.outcome = outcome
