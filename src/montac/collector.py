"""Periodic collector that samples one metric source into one sink."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass

from .config import DEFAULT_MAX_SAMPLES
from .errors import InvalidPeriod, InvalidState, SinkOpenError, SourceUnavailable
from .sink.base import BaseSink
from .source.base import MetricSource

logger = logging.getLogger(__name__)


class CollectorState(str, enum.Enum):
    """Lifecycle of a :class:`Collector`."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    CANCELED = "canceled"
    EXHAUSTED = "exhausted"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (CollectorState.CANCELED, CollectorState.EXHAUSTED, CollectorState.FAILED)


@dataclass
class CollectorStats:
    """Counters kept by a collector while it runs."""

    samples_written: int = 0
    sample_failures: int = 0
    empty_samples: int = 0
    last_error: str = ""


class Collector:
    """Samples a :class:`MetricSource` every *period_seconds* into a sink.

    The loop runs on its own thread. It stops when :meth:`cancel` is called
    or after *max_samples* ticks, and the sink is closed on every exit path.
    Failed samples are counted and skipped; they never stop the loop.

    Usage::

        collector = Collector(TemperatureSource(), FileSink("run.temps"), 0.5)
        collector.start()
        ...
        collector.cancel()
        state = collector.join()
    """

    def __init__(
        self,
        source: MetricSource,
        sink: BaseSink,
        period_seconds: float,
        max_samples: int = DEFAULT_MAX_SAMPLES,
        name: str | None = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._period = period_seconds
        self._max_samples = max_samples
        self._name = name or source.name
        self._state = CollectorState.NOT_STARTED
        self._stats = CollectorStats()
        self._error: Exception | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._running = threading.Event()
        self._cancel = threading.Event()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CollectorState:
        return self._state

    @property
    def stats(self) -> CollectorStats:
        return self._stats

    @property
    def error(self) -> Exception | None:
        """The error that put the collector in FAILED, if any."""
        return self._error

    def start(self) -> None:
        """Open the sink and start sampling in the background.

        Returns once the loop is running, or immediately with the collector
        in FAILED when the sink cannot be opened.
        """
        with self._lock:
            if self._state is not CollectorState.NOT_STARTED:
                raise InvalidState(f"collector {self._name} already started ({self._state.value})")
            if self._period <= 0:
                raise InvalidPeriod(f"sample period must be positive, got {self._period}")
            if self._period > threading.TIMEOUT_MAX:
                raise InvalidPeriod(f"sample period {self._period}s exceeds the platform wait limit")
            if self._max_samples < 1:
                raise ValueError(f"max_samples must be >= 1, got {self._max_samples}")

            try:
                self._sink.open()
            except SinkOpenError as exc:
                self._fail(exc)
                logger.error("Collector %s failed: %s", self._name, exc)
                return

            self._thread = threading.Thread(target=self._run, name=f"montac-{self._name}")
            try:
                self._thread.start()
            except RuntimeError as exc:
                self._sink.close()
                self._thread = None
                self._fail(exc)
                raise
        self._running.wait()

    def cancel(self) -> None:
        """Ask the loop to stop at its next suspension point.

        Calling this before :meth:`start` makes the collector exit as
        CANCELED right after it starts, without taking a sample.
        """
        self._cancel.set()

    def join(self, timeout: float | None = None) -> CollectorState:
        """Wait for the loop to exit and the sink to close; return the state."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self._state

    def _fail(self, exc: Exception) -> None:
        self._error = exc
        self._stats.last_error = str(exc)
        self._state = CollectorState.FAILED

    def _run(self) -> None:
        """Background thread loop."""
        final = CollectorState.EXHAUSTED
        self._state = CollectorState.RUNNING
        self._running.set()
        logger.info(
            "Collector %s running (period=%.6fs, max_samples=%d)",
            self._name, self._period, self._max_samples,
        )
        ticks = 0
        try:
            while True:
                if self._cancel.is_set():
                    final = CollectorState.CANCELED
                    break
                self._tick()
                ticks += 1
                if ticks >= self._max_samples:
                    logger.info("Collector %s reached maximum number of samples", self._name)
                    break
                if self._cancel.wait(self._period):
                    final = CollectorState.CANCELED
                    break
        except Exception as exc:
            logger.exception("Collector %s failed writing sample", self._name)
            self._error = exc
            self._stats.last_error = str(exc)
            final = CollectorState.FAILED
        finally:
            self._sink.close()
            self._state = final
        logger.info(
            "Collector %s stopped: %s (%d written, %d failed, %d empty)",
            self._name, final.value, self._stats.samples_written,
            self._stats.sample_failures, self._stats.empty_samples,
        )

    def _tick(self) -> None:
        try:
            sample = self._source.sample()
        except SourceUnavailable as exc:
            self._record_failure(exc)
            return
        except Exception as exc:
            logger.exception("Collector %s: unexpected sampling error", self._name)
            self._record_failure(exc, logged=True)
            return

        if not sample.values:
            self._stats.empty_samples += 1
            logger.debug("Collector %s: empty reading", self._name)
            return
        self._sink.write(sample)
        self._stats.samples_written += 1

    def _record_failure(self, exc: Exception, logged: bool = False) -> None:
        self._stats.sample_failures += 1
        self._stats.last_error = str(exc)
        if logged:
            return
        if self._stats.sample_failures == 1:
            logger.warning("Collector %s: sample failed: %s", self._name, exc)
        else:
            logger.debug("Collector %s: sample failed (%d so far): %s",
                         self._name, self._stats.sample_failures, exc)
