"""Tests for configuration validation and defaults."""

import tempfile
from pathlib import Path

import pytest

from ..config import LabConfig, RegistryConfig, RetryConfig, SchedulerConfig


class TestLabConfig:
    """Tests for the main configuration."""

    def test_default_state_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = LabConfig(repo_root=tmpdir)
            assert config.state_file == Path(tmpdir).resolve() / ".setup_state"

    def test_relative_state_file_resolved(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = LabConfig(repo_root=tmpdir, state_file="state/steps")
            assert config.state_file == Path(tmpdir).resolve() / "state" / "steps"

    def test_missing_root_rejected(self):
        with pytest.raises(ValueError, match="Repository root does not exist"):
            LabConfig(repo_root="/definitely/not/here/labctl")

    def test_bad_port_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ValueError, match="port out of range"):
                LabConfig(repo_root=tmpdir, required_ports=(70000,))


class TestRetryConfig:
    """Tests for retry defaults."""

    def test_defaults(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay_s == 2.0

    def test_zero_attempts_rejected(self):
        with pytest.raises(ValueError, match="max_attempts must be >= 1"):
            RetryConfig(max_attempts=0)


class TestRegistryConfig:
    def test_url_must_be_http(self):
        with pytest.raises(ValueError):
            RegistryConfig(url="localhost:4873")


class TestSchedulerConfig:
    """Tests for verify command building and worker bounds."""

    def test_default_verify_command(self, monkeypatch):
        monkeypatch.delenv("LAB_VERIFY_BIN", raising=False)
        assert SchedulerConfig().get_verify_command() == ["npm", "run", "verify"]

    def test_script_placeholder(self, monkeypatch):
        monkeypatch.delenv("LAB_VERIFY_BIN", raising=False)
        config = SchedulerConfig(verify_command=("sh", "-c", "{script}"))
        assert config.get_verify_command("vitest run") == ["sh", "-c", "vitest run"]

    def test_executable_env_override(self, monkeypatch):
        monkeypatch.setenv("LAB_VERIFY_BIN", "/opt/node/bin/npm")
        assert SchedulerConfig().get_verify_command()[0] == "/opt/node/bin/npm"

    def test_max_workers_validation(self):
        with pytest.raises(ValueError, match="max_workers must be >= 1"):
            SchedulerConfig(max_workers=0)

    def test_max_workers_defaults_to_cpu_count(self):
        assert SchedulerConfig().get_max_workers() >= 1
        assert SchedulerConfig(max_workers=3).get_max_workers() == 3

    def test_empty_verify_command_rejected(self):
        with pytest.raises(ValueError, match="verify_command must not be empty"):
            SchedulerConfig(verify_command=())
