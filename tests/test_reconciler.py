"""Tests for the Reconciler pipeline and its change handler."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from configpilot.decrypt import DecryptReport, SecretResolver
from configpilot.errors import (
    CheckoutError,
    DecryptError,
    ExecutionError,
    StagingError,
    WorkspaceError,
)
from configpilot.executor import Executor
from configpilot.process import CommandResult
from configpilot.reconciler import Reconciler, ReconcileReport, reconcile_handler
from configpilot.workspace import Workspace


class FakeTools:
    """One runner for git, sops and bash that records the order of calls."""

    def __init__(self, clone_rc: int = 0, script_rc: int = 0):
        self.clone_rc = clone_rc
        self.script_rc = script_rc
        self.calls: list[str] = []

    def __call__(self, cmd, cwd=None, env=None, timeout=None):
        tool = cmd[0]
        self.calls.append(tool)
        if tool == "git":
            if self.clone_rc:
                return CommandResult(args=cmd, returncode=self.clone_rc, output="fatal: repository not found")
            dest = Path(cmd[-1])
            (dest / "deploy").mkdir(parents=True)
            (dest / "deploy" / "secret.yaml").write_text("ENC:password: x")
            (dest / "deploy" / "plain.yaml").write_text("replicas: 1")
            (dest / "other.txt").write_text("not deployed")
            return CommandResult(args=cmd, returncode=0, output="Cloning...")
        if tool == "sops":
            path = Path(cmd[-1])
            text = path.read_text()
            if text.startswith("ENC:"):
                path.write_text(text[4:])
                return CommandResult(args=cmd, returncode=0)
            return CommandResult(args=cmd, returncode=1, output="not encrypted")
        if tool == "bash":
            return CommandResult(args=cmd, returncode=self.script_rc, output="deployed\n")
        raise AssertionError(f"unexpected command {cmd}")


def _reconciler(data_dir, tools, sleep=None, settle_delay=5.0):
    return Reconciler(
        workspace=Workspace(data_dir, runner=tools),
        resolver=SecretResolver(runner=tools),
        executor=Executor(runner=tools),
        settle_delay=settle_delay,
        sleep=sleep or MagicMock(),
    )


class TestReconcile:
    def test_full_pipeline(self, data_dir, ctx):
        tools = FakeTools()
        sleep = MagicMock()
        report = _reconciler(data_dir, tools, sleep=sleep).reconcile(ctx)

        assert isinstance(report, ReconcileReport)
        assert report.steps == ["prepare", "checkout", "stage", "discard", "decrypt", "execute"]
        assert tools.calls == ["git", "sops", "sops", "bash"]
        sleep.assert_called_once_with(5.0)

        staging = data_dir / "files"
        assert (staging / "secret.yaml").read_text() == "password: x"
        assert (staging / "plain.yaml").read_text() == "replicas: 1"
        assert not (staging / "other.txt").exists()
        assert not (data_dir / "infra").exists()
        assert report.decrypt.decrypted == ["secret.yaml"]
        assert report.execution.output == "deployed\n"

    def test_settle_delay_happens_before_checkout(self, data_dir, ctx):
        tools = FakeTools()
        order = []
        sleep = MagicMock(side_effect=lambda s: order.append(("sleep", list(tools.calls))))
        _reconciler(data_dir, tools, sleep=sleep).reconcile(ctx)
        assert order == [("sleep", [])]

    def test_zero_delay_skips_sleep(self, data_dir, ctx):
        sleep = MagicMock()
        _reconciler(data_dir, FakeTools(), sleep=sleep, settle_delay=0).reconcile(ctx)
        sleep.assert_not_called()

    def test_starts_from_clean_slate(self, data_dir, ctx):
        (data_dir / "files").mkdir(parents=True)
        (data_dir / "files" / "stale.yaml").write_text("old")
        (data_dir / "infra").mkdir()
        _reconciler(data_dir, FakeTools()).reconcile(ctx)
        assert not (data_dir / "files" / "stale.yaml").exists()

    def test_repeat_runs_are_independent(self, data_dir, ctx):
        rec = _reconciler(data_dir, FakeTools())
        rec.reconcile(ctx)
        rec.reconcile(ctx)
        assert (data_dir / "files" / "secret.yaml").read_text() == "password: x"

    def test_checkout_failure_stops_pipeline(self, data_dir, ctx):
        resolver = MagicMock(spec=SecretResolver)
        executor = MagicMock(spec=Executor)
        tools = FakeTools(clone_rc=128)
        rec = Reconciler(Workspace(data_dir, runner=tools), resolver, executor, sleep=MagicMock())

        with pytest.raises(CheckoutError) as excinfo:
            rec.reconcile(ctx)

        assert "repository not found" in excinfo.value.output
        resolver.decrypt_all.assert_not_called()
        executor.run.assert_not_called()

    def test_staging_failure_stops_pipeline(self, data_dir, ctx):
        ctx = ctx.model_copy(update={"monitor_path": "missing"})
        resolver = MagicMock(spec=SecretResolver)
        executor = MagicMock(spec=Executor)
        rec = Reconciler(Workspace(data_dir, runner=FakeTools()), resolver, executor, sleep=MagicMock())

        with pytest.raises(StagingError):
            rec.reconcile(ctx)
        resolver.decrypt_all.assert_not_called()
        executor.run.assert_not_called()

    def test_prepare_failure_stops_before_checkout(self, data_dir, ctx):
        workspace = MagicMock(spec=Workspace)
        workspace.prepare.side_effect = WorkspaceError("cannot remove data/files")
        sleep = MagicMock()
        rec = Reconciler(workspace, MagicMock(), MagicMock(), sleep=sleep)

        with pytest.raises(WorkspaceError):
            rec.reconcile(ctx)
        sleep.assert_not_called()
        workspace.checkout.assert_not_called()

    def test_decrypt_failure_stops_before_execute(self, data_dir, ctx):
        resolver = MagicMock(spec=SecretResolver)
        resolver.decrypt_all.side_effect = DecryptError("cannot read staging tree")
        executor = MagicMock(spec=Executor)
        rec = Reconciler(Workspace(data_dir, runner=FakeTools()), resolver, executor, sleep=MagicMock())

        with pytest.raises(DecryptError):
            rec.reconcile(ctx)
        executor.run.assert_not_called()

    def test_execution_failure_propagates(self, data_dir, ctx):
        with pytest.raises(ExecutionError):
            _reconciler(data_dir, FakeTools(script_rc=2)).reconcile(ctx)

    def test_resolver_gets_staging_and_key(self, data_dir, ctx):
        resolver = MagicMock(spec=SecretResolver)
        resolver.decrypt_all.return_value = DecryptReport()
        executor = MagicMock(spec=Executor)
        rec = Reconciler(Workspace(data_dir, runner=FakeTools()), resolver, executor, sleep=MagicMock())
        rec.reconcile(ctx)

        resolver.decrypt_all.assert_called_once_with(data_dir / "files", "AGE-SECRET-KEY-TEST")
        executor.run.assert_called_once_with(data_dir / "files", "echo hello")


class TestReconcileHandler:
    def test_success(self, ctx, revision, caplog):
        reconciler = MagicMock(spec=Reconciler)
        log = logging.getLogger("test.handler")
        handle = reconcile_handler(reconciler, ctx, log=log)

        with caplog.at_level(logging.INFO, logger="test.handler"):
            handle(revision("abcdef1234", message="Bump image"))

        reconciler.reconcile.assert_called_once_with(ctx)
        text = caplog.text
        assert "abcdef1" in text
        assert "Bump image" in text

    def test_failure_logged_and_reraised(self, ctx, revision, caplog):
        reconciler = MagicMock(spec=Reconciler)
        reconciler.reconcile.side_effect = CheckoutError("git clone failed", output="fatal: nope")
        handle = reconcile_handler(reconciler, ctx, log=logging.getLogger("test.handler"))

        with caplog.at_level(logging.INFO, logger="test.handler"):
            with pytest.raises(CheckoutError):
                handle(revision("abcdef1234"))

        assert "checkout" in caplog.text
        assert "fatal: nope" in caplog.text
