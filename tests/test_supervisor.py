"""Tests for the supervisor that runs a workload between two collectors."""

import math
import subprocess
import tempfile
import threading
import time
from pathlib import Path

import pytest

from fakes import FakeSource
from montac.collector import CollectorState
from montac.config import MontacConfig
from montac.errors import ConfigError, WorkloadLaunchError
from montac.reader import read_metric_file
from montac.supervisor import CollectorReport, RunOutcome, Supervisor


def _supervisor(**kwargs):
    return Supervisor(
        temperature_source=kwargs.get("temps", FakeSource(values=(45.0, 47.0, 51.0, 49.0), name="temps")),
        clock_source=kwargs.get("clock", FakeSource(values=(2400.0, 1200.0), name="clock")),
    )


def _config(tmpdir, **overrides):
    values = {
        "command": "true",
        "output_prefix": str(Path(tmpdir) / "data"),
        "period_us": 20_000,
        "verbosity": 0,
    }
    values.update(overrides)
    return MontacConfig(**values)


class TestSupervisorRun:

    def test_sleep_scenario_line_counts(self):
        """``sleep 2`` at 0.5 s produces 3-5 rows of constant width per file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = _config(tmpdir, command="sleep 2", period_us=500_000)
            outcome = _supervisor().run(cfg)

            assert outcome.exit_code == 0
            for report, width in ((outcome.temperature, 4), (outcome.clock, 2)):
                assert report.state is CollectorState.CANCELED
                rows = read_metric_file(report.path, cfg.period_us)
                assert 3 <= len(rows) <= 5
                assert {len(r.values) for r in rows} == {width}

    def test_sample_count_bounds(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            period = 0.1
            cfg = _config(tmpdir, command="sleep 1", period_us=int(period * 1_000_000))
            started = time.monotonic()
            outcome = _supervisor().run(cfg)
            duration = time.monotonic() - started

            for report in outcome.collectors:
                count = report.stats.samples_written
                # generous lower bound for slow CI machines
                assert math.floor(1.0 / period) // 2 <= count
                assert count <= math.ceil(duration / period) + 1

    def test_output_paths(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = _config(tmpdir)
            outcome = _supervisor().run(cfg)
            assert outcome.temperature.path == Path(tmpdir) / "data.temps"
            assert outcome.clock.path == Path(tmpdir) / "data.clock"
            assert outcome.temperature.path.exists()
            assert outcome.clock.path.exists()

    def test_workload_failure_still_cancels_collectors(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            outcome = _supervisor().run(_config(tmpdir, command="exit 3"))

            assert outcome.workload_exit_status == 3
            assert outcome.workload_failed
            assert outcome.exit_code == 3
            assert outcome.temperature.state is CollectorState.CANCELED
            assert outcome.clock.state is CollectorState.CANCELED

    def test_workload_killed_by_signal(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            outcome = _supervisor().run(_config(tmpdir, command="kill -TERM $$"))
            assert outcome.workload_exit_status == -15
            assert outcome.exit_code == 128 + 15

    def test_collectors_running_before_workload(self, monkeypatch):
        seen: list[str] = []
        real_run = subprocess.run

        def recording_run(*args, **kwargs):
            seen.extend(t.name for t in threading.enumerate())
            return real_run(*args, **kwargs)

        monkeypatch.setattr(subprocess, "run", recording_run)
        with tempfile.TemporaryDirectory() as tmpdir:
            _supervisor().run(_config(tmpdir))
        assert "montac-temps" in seen
        assert "montac-clock" in seen
        # both threads joined afterwards
        assert not [t for t in threading.enumerate() if t.name.startswith("montac-")]

    def test_source_outage_mid_run(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temps = FakeSource(fail_on={3}, name="temps")
            cfg = _config(tmpdir, command="sleep 0.5", period_us=50_000)
            outcome = _supervisor(temps=temps).run(cfg)

            assert outcome.exit_code == 0
            assert outcome.temperature.state is CollectorState.CANCELED
            assert outcome.temperature.stats.sample_failures == 1
            rows = read_metric_file(outcome.temperature.path, cfg.period_us)
            assert len(rows) == temps.calls - 1
            assert len(rows) >= 3

    def test_rerun_truncates_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = _config(tmpdir, command="sleep 0.3", period_us=20_000)
            _supervisor().run(cfg)
            first = len(read_metric_file(cfg.temps_path, cfg.period_us))

            outcome = _supervisor().run(cfg.with_overrides(command="true", max_samples=1))
            assert outcome.temperature.state in (CollectorState.CANCELED, CollectorState.EXHAUSTED)
            rows = read_metric_file(cfg.temps_path, cfg.period_us)
            assert len(rows) <= 1 < first

    def test_max_samples_exhausts_collectors(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = _config(tmpdir, command="sleep 0.3", period_us=1_000, max_samples=2)
            outcome = _supervisor().run(cfg)
            assert outcome.temperature.state is CollectorState.EXHAUSTED
            assert outcome.clock.state is CollectorState.EXHAUSTED
            assert len(read_metric_file(cfg.clock_path, cfg.period_us)) == 2
            assert outcome.exit_code == 0


class TestSupervisorErrors:

    def test_empty_prefix_rejected_before_anything_starts(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temps = FakeSource()
            cfg = MontacConfig(command=f"touch {tmpdir}/ran", output_prefix="")
            with pytest.raises(ConfigError):
                _supervisor(temps=temps).run(cfg)
            assert temps.calls == 0
            assert list(Path(tmpdir).iterdir()) == []

    def test_empty_command_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ConfigError):
                _supervisor().run(_config(tmpdir, command="  "))
            assert list(Path(tmpdir).iterdir()) == []

    def test_launch_failure_joins_collectors(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = _config(tmpdir, shell="/nonexistent/montac-shell")
            with pytest.raises(WorkloadLaunchError) as excinfo:
                _supervisor().run(cfg)

            outcome = excinfo.value.outcome
            assert outcome.workload_exit_status is None
            assert outcome.exit_code == 127
            assert outcome.temperature.state is CollectorState.CANCELED
            assert outcome.clock.state is CollectorState.CANCELED
            assert not [t for t in threading.enumerate() if t.name.startswith("montac-")]

    def test_rejected_command_text_is_launch_error(self, monkeypatch):
        def reject(*args, **kwargs):
            raise ValueError("embedded null byte")

        monkeypatch.setattr(subprocess, "run", reject)
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(WorkloadLaunchError, match="embedded null byte") as excinfo:
                _supervisor().run(_config(tmpdir))

            outcome = excinfo.value.outcome
            assert outcome.exit_code == 127
            assert outcome.temperature.state is CollectorState.CANCELED
            assert outcome.clock.state is CollectorState.CANCELED

    def test_sink_failure_is_isolated(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            marker = Path(tmpdir) / "ran"
            cfg = _config(
                tmpdir,
                command=f"touch {marker}",
                output_prefix=str(Path(tmpdir) / "missing-dir" / "data"),
            )
            outcome = _supervisor().run(cfg)

            assert marker.exists()
            assert outcome.workload_exit_status == 0
            assert outcome.temperature.state is CollectorState.FAILED
            assert outcome.clock.state is CollectorState.FAILED
            assert outcome.exit_code == 1


def test_outcome_exit_code_precedence():
    ok = CollectorReport("temps", Path("x.temps"), CollectorState.CANCELED)
    failed = CollectorReport("clock", Path("x.clock"), CollectorState.FAILED)

    assert RunOutcome(0, ok, ok).exit_code == 0
    assert RunOutcome(0, ok, failed).exit_code == 1
    assert RunOutcome(2, ok, failed).exit_code == 2
    assert RunOutcome(-9, ok, ok).exit_code == 137
    assert RunOutcome(None, ok, ok, launch_error="no shell").exit_code == 127


def test_real_host_sources_smoke():
    """The default psutil sources never crash a run, even without sensors."""
    with tempfile.TemporaryDirectory() as tmpdir:
        outcome = Supervisor().run(_config(tmpdir, command="sleep 0.1"))
        assert outcome.exit_code == 0
        for report in outcome.collectors:
            assert report.state is CollectorState.CANCELED
            stats = report.stats
            assert stats.samples_written + stats.sample_failures + stats.empty_samples >= 1
