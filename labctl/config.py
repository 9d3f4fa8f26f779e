"""
Configuration for labctl.

Dataclass configs validated in ``__post_init__``; invalid values raise
``ValueError`` before any work starts.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .utils.process_utils import get_cpu_cores


@dataclass
class RetryConfig:
    """Linear backoff with jitter for retried commands."""
    max_attempts: int = 3
    base_delay_s: float = 2.0
    jitter_bound_s: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_s < 0:
            raise ValueError(f"base_delay_s must be >= 0, got {self.base_delay_s}")
        if self.jitter_bound_s < 0:
            raise ValueError(f"jitter_bound_s must be >= 0, got {self.jitter_bound_s}")


@dataclass
class TimeoutConfig:
    """Timeouts in seconds for external operations."""
    network_s: float = 30
    docker_s: float = 60
    registry_s: float = 120
    tool_install_s: float = 300

    def __post_init__(self):
        for name in ("network_s", "docker_s", "registry_s", "tool_install_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")


@dataclass
class RegistryConfig:
    """Local package registry started during bootstrap."""
    url: str = "http://localhost:4873"
    container_name: str = "verdaccio"
    network_name: str = "lab-network"
    compose_file: str = "docker-compose.yml"
    poll_interval_s: float = 2.0

    def __post_init__(self):
        if not self.url.startswith(("http://", "https://")):
            raise ValueError(f"registry url must be http(s), got {self.url!r}")
        if self.poll_interval_s <= 0:
            raise ValueError(f"poll_interval_s must be > 0, got {self.poll_interval_s}")


@dataclass
class SchedulerConfig:
    """Task discovery and staged scheduling settings."""
    category_dirs: tuple[str, ...] = ("libs", "services", "apis")
    include_root: bool = True
    manifest_name: str = "package.json"
    capability: str = "verify"
    ignore_dirs: tuple[str, ...] = ("node_modules",)
    producer_paths: tuple[str, ...] = ("libs/grpc-client-generator",)

    # "{script}" in any argument is replaced with the manifest's verify script
    verify_command: tuple[str, ...] = ("npm", "run", "verify")
    command_env: str = "LAB_VERIFY_BIN"

    # None means one worker per logical CPU
    max_workers: int | None = None

    def __post_init__(self):
        self.category_dirs = tuple(self.category_dirs)
        self.ignore_dirs = tuple(self.ignore_dirs)
        self.producer_paths = tuple(p.strip("/") for p in self.producer_paths)
        self.verify_command = tuple(self.verify_command)

        if not self.verify_command:
            raise ValueError("verify_command must not be empty")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    def get_verify_command(self, script: str = "") -> list[str]:
        """Build argv for a task's verify run. The executable may be overridden from the environment."""
        argv = [arg.replace("{script}", script) for arg in self.verify_command]
        argv[0] = os.environ.get(self.command_env, argv[0])
        return argv

    def get_max_workers(self) -> int:
        return self.max_workers or get_cpu_cores()


@dataclass
class LabConfig:
    """
    Main configuration for labctl.

    Implements fail-fast validation: relative paths are resolved against
    ``repo_root`` and a missing root raises immediately.
    """
    repo_root: Path
    state_file: Path | None = None

    keep_state: bool = False
    verbose: bool = False

    # Ports the local services need
    required_ports: tuple[int, ...] = (4873, 50052)
    min_node_major: int = 14
    tools: tuple[str, ...] = ("grpcurl", "grpcui", "protoc")

    retry: RetryConfig = field(default_factory=RetryConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    def __post_init__(self):
        """Validate and resolve paths after initialization."""
        self.repo_root = Path(self.repo_root).resolve()

        if not self.repo_root.exists():
            raise ValueError(f"Repository root does not exist: {self.repo_root}")

        if self.state_file is None:
            self.state_file = self.repo_root / ".setup_state"
        else:
            self.state_file = Path(self.state_file)
            if not self.state_file.is_absolute():
                self.state_file = self.repo_root / self.state_file

        for port in self.required_ports:
            if not 0 < port < 65536:
                raise ValueError(f"port out of range: {port}")

        if self.min_node_major < 1:
            raise ValueError(f"min_node_major must be >= 1, got {self.min_node_major}")
