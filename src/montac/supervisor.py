"""Run a workload command while two collectors sample the host."""

from __future__ import annotations

import logging
import signal
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .collector import Collector, CollectorState, CollectorStats
from .config import MontacConfig
from .errors import WorkloadLaunchError
from .sink.file import FileSink
from .source import build_source
from .source.base import MetricSource

logger = logging.getLogger(__name__)

# exit status used when the workload shell cannot be started
LAUNCH_FAILURE_EXIT_CODE = 127


@dataclass
class CollectorReport:
    """Terminal state of one collector after a run."""

    name: str
    path: Path
    state: CollectorState
    stats: CollectorStats = field(default_factory=CollectorStats)

    @property
    def failed(self) -> bool:
        return self.state is CollectorState.FAILED


@dataclass
class RunOutcome:
    """Result of :meth:`Supervisor.run`."""

    workload_exit_status: int | None
    temperature: CollectorReport
    clock: CollectorReport
    launch_error: str = ""

    @property
    def collectors(self) -> list[CollectorReport]:
        return [self.temperature, self.clock]

    @property
    def workload_failed(self) -> bool:
        return self.workload_exit_status is not None and self.workload_exit_status != 0

    @property
    def exit_code(self) -> int:
        """Process exit status for this outcome.

        A failing workload wins; a signal death maps to ``128 + signum``.
        """
        if self.launch_error:
            return LAUNCH_FAILURE_EXIT_CODE
        if self.workload_failed:
            assert self.workload_exit_status is not None
            if self.workload_exit_status < 0:
                return 128 + (-self.workload_exit_status)
            return self.workload_exit_status
        if any(c.failed for c in self.collectors):
            return 1
        return 0


class Supervisor:
    """Starts the temperature and clock collectors around one workload.

    Sources default to the backends named in the config; pass them in to
    sample from something else.
    """

    def __init__(
        self,
        temperature_source: MetricSource | None = None,
        clock_source: MetricSource | None = None,
    ) -> None:
        self._temperature_source = temperature_source
        self._clock_source = clock_source

    def _build_collectors(self, config: MontacConfig) -> tuple[Collector, Collector]:
        temps_source = self._temperature_source or build_source("temps", config.temperature_source)
        clock_source = self._clock_source or build_source("clock", config.clock_source)
        temps = Collector(
            temps_source,
            FileSink(config.temps_path),
            config.period_seconds,
            max_samples=config.max_samples,
            name="temps",
        )
        clock = Collector(
            clock_source,
            FileSink(config.clock_path),
            config.period_seconds,
            max_samples=config.max_samples,
            name="clock",
        )
        return temps, clock

    def run(self, config: MontacConfig) -> RunOutcome:
        """Monitor the host for the lifetime of ``config.command``.

        Raises :class:`~montac.errors.ConfigError` before anything starts
        when *config* is invalid, and :class:`WorkloadLaunchError` after
        both collectors have been joined when the shell cannot be started.
        """
        config.validate()
        temps, clock = self._build_collectors(config)

        logger.info("Saving temps (degrees C) every %.6f s to %s", config.period_seconds, config.temps_path)
        logger.info("Saving clock speeds (MHz) every %.6f s to %s", config.period_seconds, config.clock_path)

        exit_status: int | None = None
        launch_error = ""
        started: list[Collector] = []
        try:
            for collector in (temps, clock):
                collector.start()
                started.append(collector)
            exit_status, launch_error = self._run_workload(config)
        finally:
            for collector in started:
                collector.cancel()
            for collector in started:
                collector.join()

        outcome = RunOutcome(
            workload_exit_status=exit_status,
            temperature=CollectorReport("temps", config.temps_path, temps.state, temps.stats),
            clock=CollectorReport("clock", config.clock_path, clock.state, clock.stats),
            launch_error=launch_error,
        )
        if launch_error:
            raise WorkloadLaunchError(launch_error, outcome=outcome)
        return outcome

    def _run_workload(self, config: MontacConfig) -> tuple[int | None, str]:
        logger.info("Running cmd: %s", config.command)
        try:
            result = subprocess.run(config.command, shell=True, executable=config.shell, check=False)
        except (OSError, ValueError) as exc:
            message = f"failed to run cmd {config.command!r} with shell {config.shell!r}: {exc}"
            logger.error("%s", message)
            return None, message

        status = result.returncode
        if status < 0:
            try:
                signame = signal.Signals(-status).name
            except ValueError:
                signame = str(-status)
            logger.warning("Workload killed by signal %s", signame)
        elif status != 0:
            logger.warning("Workload exited with status %d", status)
        else:
            logger.info("Workload finished")
        return status, ""
