"""Tests for external process helpers and log formatting."""

import logging
from unittest.mock import patch

import pytest

from ..retry import retry_with_backoff
from ..utils.logger import StructuredFormatter, get_logger
from ..utils.process_utils import Command, capture_output, command_exists, get_cpu_cores, resolve_executable


class TestCommand:
    """Tests for the Command action."""

    def test_success(self, tmp_path):
        assert Command(["sh", "-c", "exit 0"], cwd=tmp_path)() is True

    def test_failure_records_exit_code(self):
        command = Command(["sh", "-c", "exit 4"])
        assert command() is False
        assert command.last_exit_code == 4

    def test_missing_executable(self):
        command = Command(["definitely-not-a-real-binary-xyz"])
        assert command.run() == 127

    def test_timeout(self):
        command = Command(["sh", "-c", "sleep 5"], timeout=0.2)
        assert command.run() == 124

    def test_str_is_shell_line(self):
        assert str(Command(["npm", "run", "verify me"])) == "npm run 'verify me'"

    def test_retry_logs_command_line(self, caplog):
        command = Command(["sh", "-c", "exit 1"])
        assert retry_with_backoff(2, 0, command, jitter_bound=0, sleep=lambda s: None) is False
        assert "Command failed after 2 attempts: sh -c 'exit 1'" in caplog.text


class TestHelpers:
    """Tests for executable lookup and CPU detection."""

    def test_resolve_executable_on_path(self):
        assert resolve_executable("sh").endswith("sh")

    def test_resolve_missing(self):
        with pytest.raises(FileNotFoundError, match="not found on PATH"):
            resolve_executable("definitely-not-a-real-binary-xyz")

    def test_resolve_empty(self):
        with pytest.raises(FileNotFoundError):
            resolve_executable("")

    def test_command_exists(self):
        assert command_exists("sh")
        assert not command_exists("definitely-not-a-real-binary-xyz")

    def test_cpu_fallback(self):
        with patch("labctl.utils.process_utils.os.cpu_count", return_value=None):
            assert get_cpu_cores() == 2

    def test_capture_output(self):
        assert capture_output(["sh", "-c", "echo v18.2.0"]) == "v18.2.0"
        assert capture_output(["sh", "-c", "exit 1"]) is None


class TestLogger:
    """Tests for structured log formatting."""

    def test_context_is_rendered(self):
        formatter = StructuredFormatter(use_colors=False)
        record = logging.LogRecord("labctl.test", logging.INFO, __file__, 1, "hello", None, None)
        record.extra_data = {"task": "svc"}
        line = formatter.format(record)
        assert "[labctl.test][INFO ] hello task=svc" in line

    def test_bound_context(self, caplog):
        caplog.set_level(logging.INFO)
        logger = get_logger("test", step="A").bind(attempt=2)
        logger.info("running")
        record = caplog.records[-1]
        assert record.extra_data == {"step": "A", "attempt": 2}
