"""Tests for the command line interface."""

import json
import logging
import os
import signal

import pytest

from ..checkpoint import CheckpointStore
from ..cli import cancel_on_signal, create_parser, main
from ..models import StepStatus
from ..recovery import INTERRUPT_EXIT_CODE, RecoveryGuard
from ..step_runner import CancellationToken


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestParser:
    """Tests for argument parsing."""

    def test_preflight_max_workers(self):
        args = create_parser().parse_args(["preflight", "--max-workers", "4"])
        assert args.command == "preflight"
        assert args.max_workers == 4

    def test_setup_keep_state(self):
        args = create_parser().parse_args(["--verbose", "setup", "--keep-state"])
        assert args.keep_state is True
        assert args.verbose is True

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestStateCommands:
    """Tests for status and reset."""

    def test_status_without_state(self, tmp_path, capsys):
        assert main(["--repo-root", str(tmp_path), "status"]) == 0
        assert "No setup state found" in capsys.readouterr().out

    def test_status_does_not_modify_state(self, tmp_path, capsys):
        store = CheckpointStore(tmp_path / ".setup_state")
        store.set("VALIDATE_NODEJS", StepStatus.COMPLETED)
        store.set("CHECK_PORT_CONFLICTS", StepStatus.DEGRADED)
        before = store.path.read_text()

        assert main(["--repo-root", str(tmp_path), "status"]) == 0

        out = capsys.readouterr().out
        assert "VALIDATE_NODEJS" in out and "COMPLETED" in out
        assert "DEGRADED" in out
        assert "PENDING" in out
        assert store.path.read_text() == before

    def test_reset_clears_state(self, tmp_path):
        store = CheckpointStore(tmp_path / ".setup_state")
        store.set("VALIDATE_NODEJS", StepStatus.FAILED)

        assert main(["--repo-root", str(tmp_path), "reset"]) == 0
        assert not store.exists()

    def test_resume_without_state_exits_nonzero(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--repo-root", str(tmp_path), "resume"])
        assert excinfo.value.code == 1

    def test_invalid_repo_root(self, tmp_path):
        assert main(["--repo-root", str(tmp_path / "missing"), "status"]) == 2


class TestPreflightCommand:
    """Tests for preflight through the CLI."""

    def test_no_projects_passes(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LAB_VERIFY_BIN", "sh")
        assert main(["--repo-root", str(tmp_path), "preflight"]) == 0

    def test_missing_verify_executable(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LAB_VERIFY_BIN", "definitely-not-a-real-binary-xyz")
        with pytest.raises(SystemExit) as excinfo:
            main(["--repo-root", str(tmp_path), "preflight"])
        assert excinfo.value.code == 1

    def test_failing_project_exits_one(self, tmp_path, monkeypatch, capsys):
        project = tmp_path / "apis" / "svc"
        project.mkdir(parents=True)
        (project / "package.json").write_text(json.dumps({"scripts": {"verify": "exit 3"}}))
        # "sh run verify" runs a script file named "run"
        (project / "run").write_text("echo from verify\nexit 3\n")
        monkeypatch.setenv("LAB_VERIFY_BIN", "sh")

        assert main(["--repo-root", str(tmp_path), "preflight", "-j", "1"]) == 1

        out = capsys.readouterr().out
        assert "FAILURE: svc (exit 3)" in out
        assert "from verify" in out
        assert "Results: 0 passed, 1 failed" in out


class TestSignalHandling:
    """Tests for routing SIGINT to the cancellation token."""

    def test_sigint_cancels_token_and_restores_handler(self):
        previous = signal.getsignal(signal.SIGINT)
        token = CancellationToken()

        with pytest.raises(SystemExit) as excinfo:
            with RecoveryGuard(), cancel_on_signal(token):
                os.kill(os.getpid(), signal.SIGINT)
                assert token.wait(5.0)
                token.raise_if_cancelled()

        assert token.is_cancelled
        assert excinfo.value.code == INTERRUPT_EXIT_CODE
        assert signal.getsignal(signal.SIGINT) is previous
