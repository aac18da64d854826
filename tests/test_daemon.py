"""Tests for the configpilot daemon: wiring, PID file, lifecycle."""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest

from configpilot.daemon import (
    PID_FILE,
    PilotDaemon,
    build_loop,
    build_reconciler,
    is_running,
    read_pid,
)
from configpilot.errors import StartupError
from configpilot.models import PilotConfig
from configpilot.monitor import PollLoop


@pytest.fixture
def config(tmp_path):
    return PilotConfig(
        owner="acme",
        repo="infra",
        monitorPath="deploy",
        githubToken="ghp_secret123",
        ageSecret="AGE-KEY",
        script="echo hi",
        interval=15,
        dataDir=tmp_path / "data",
        settleDelay=2,
        scriptTimeout=600,
    )


class TestWiring:
    def test_build_loop(self, config):
        loop = build_loop(config)
        assert isinstance(loop, PollLoop)
        assert loop.interval == 15
        assert loop.path == "deploy"

    def test_build_reconciler(self, config):
        rec = build_reconciler(config)
        assert rec.settle_delay == 2
        assert rec.workspace.data_dir == config.data_dir


class TestPidManagement:
    def test_no_pid_file(self, tmp_path):
        assert read_pid(tmp_path) is None
        assert is_running(tmp_path) is False

    def test_current_process(self, tmp_path):
        (tmp_path / PID_FILE).write_text(str(os.getpid()))
        assert read_pid(tmp_path) == os.getpid()
        assert is_running(tmp_path) is True

    def test_stale_pid_removed(self, tmp_path):
        pid_file = tmp_path / PID_FILE
        pid_file.write_text("999999999")
        with patch("configpilot.daemon.os.kill", side_effect=ProcessLookupError):
            assert read_pid(tmp_path) is None
        assert not pid_file.exists()

    def test_garbage_pid_removed(self, tmp_path):
        pid_file = tmp_path / PID_FILE
        pid_file.write_text("not-a-pid")
        assert read_pid(tmp_path) is None
        assert not pid_file.exists()


class TestPilotDaemon:
    def test_start_writes_pid(self, config):
        loop = MagicMock()
        svc = PilotDaemon(config, loop=loop)
        with patch.object(PilotDaemon, "_setup_signals"):
            svc.start()
        assert (config.data_dir / PID_FILE).read_text() == str(os.getpid())
        loop.start.assert_called_once()

    def test_startup_error_removes_pid(self, config):
        loop = MagicMock()
        loop.start.side_effect = StartupError("failed to get initial commit")
        svc = PilotDaemon(config, loop=loop)
        with patch.object(PilotDaemon, "_setup_signals"):
            with pytest.raises(StartupError):
                svc.start()
        assert not (config.data_dir / PID_FILE).exists()

    def test_run_forever_cleans_up(self, config):
        loop = MagicMock()
        svc = PilotDaemon(config, loop=loop)
        with patch.object(PilotDaemon, "_setup_signals"):
            svc.start()
        svc.run_forever()
        loop.run.assert_called_once()
        assert not (config.data_dir / PID_FILE).exists()

    def test_keyboard_interrupt_is_clean(self, config):
        loop = MagicMock()
        loop.run.side_effect = KeyboardInterrupt
        svc = PilotDaemon(config, loop=loop)
        svc.run_forever()
        assert not (config.data_dir / PID_FILE).exists()

    def test_signal_stops_loop(self, config):
        import signal

        loop = MagicMock()
        svc = PilotDaemon(config, loop=loop)
        svc._handle_signal(signal.SIGTERM, None)
        loop.stop.assert_called_once()
