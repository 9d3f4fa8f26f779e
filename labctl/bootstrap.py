"""
Bootstrap workflow for the lab development environment.

Six phases of checkpointed steps: validate the environment, install tools,
start infrastructure, install dependencies, configure direnv, smoke test.
Re-running skips everything already COMPLETED.
"""

import platform
import re
import socket
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TextIO

import requests

from .checkpoint import CheckpointStore, Probe
from .config import LabConfig
from .errors import StateError
from .models import BootstrapResult
from .retry import retry_with_backoff
from .step_runner import CancellationToken, StepRunner
from .utils.logger import get_logger
from .utils.process_utils import Command, capture_output, command_exists

logger = get_logger("bootstrap")

ENVRC_TEMPLATE = """# Lab CLI shortcut
export PATH="$PWD/cli:$PATH"

# Development environment variables
export GRPC_VERBOSITY=ERROR
export NODE_ENV=development
"""

# Tool name -> package that provides it
TOOL_PACKAGES = {
    "grpcurl": "grpcurl",
    "grpcui": "grpcui",
    "protoc": "protobuf",
}


class SetupActions:
    """The concrete checks and commands behind each bootstrap step.

    Every action returns True on success and False on failure.
    """

    def __init__(
        self,
        config: LabConfig,
        http_get: Callable[..., requests.Response] = requests.get,
        sleep: Callable[[float], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self.config = config
        self.http_get = http_get
        self.cancel_token = cancel_token or CancellationToken()
        # Cancellation wakes a pending backoff or poll
        self.sleep = sleep or self.cancel_token.wait

    def _retry(self, action: Callable[[], bool]) -> bool:
        policy = self.config.retry
        return retry_with_backoff(
            policy.max_attempts,
            policy.base_delay_s,
            action,
            jitter_bound=policy.jitter_bound_s,
            sleep=self.sleep,
            cancel_token=self.cancel_token,
        )

    # Phase 1: environment validation

    def validate_nodejs(self) -> bool:
        if not command_exists("node"):
            logger.error("Node.js is not installed (https://nodejs.org/)")
            return False
        if not command_exists("npm"):
            logger.error("npm is not installed; it ships with Node.js")
            return False

        version = capture_output(["node", "-v"], timeout=self.config.timeouts.network_s) or ""
        match = re.match(r"v?(\d+)", version)
        if not match:
            logger.error(f"Could not determine Node.js version from {version!r}")
            return False
        if int(match.group(1)) < self.config.min_node_major:
            logger.error(f"Node.js {version} is too old (require >= {self.config.min_node_major})")
            return False
        logger.info(f"Node.js environment is ready ({version})")
        return True

    def check_port_conflicts(self) -> bool:
        busy = []
        for port in self.config.required_ports:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(1.0)
                if sock.connect_ex(("127.0.0.1", port)) == 0:
                    busy.append(port)
        for port in busy:
            logger.warning(f"Port {port} is already in use")
        return not busy

    def validate_git(self) -> bool:
        if not command_exists("git"):
            logger.error("Git is not installed")
            return False
        if not Command(["git", "rev-parse", "--git-dir"], cwd=self.config.repo_root)():
            logger.warning("Not in a Git repository; some features may be limited")
        return True

    def validate_direnv(self) -> bool:
        if not command_exists("direnv"):
            logger.error("direnv is not installed")
            return False
        if not Command(["direnv", "status"], cwd=self.config.repo_root)():
            logger.error("direnv is not hooked into your shell; add 'eval \"$(direnv hook bash)\"' to your profile")
            return False
        return True

    def validate_docker(self) -> bool:
        if not command_exists("docker"):
            logger.error("Docker is not installed")
            return False
        if not Command(["docker", "info"], timeout=self.config.timeouts.docker_s)():
            logger.error("Docker daemon is not running")
            return False
        return True

    # Phase 2: tools

    def _install_command(self, package: str) -> Command | None:
        timeout = self.config.timeouts.tool_install_s
        if sys.platform == "darwin" and command_exists("brew"):
            return Command(["brew", "install", package], timeout=timeout)
        if platform.system() == "Linux" and command_exists("apt-get"):
            return Command(["sudo", "apt-get", "install", "-y", package], timeout=timeout)
        return None

    def install_tools(self) -> bool:
        ok = True
        for tool in self.config.tools:
            if command_exists(tool):
                logger.info(f"{tool} is installed")
                continue
            install = self._install_command(TOOL_PACKAGES.get(tool, tool))
            if install is None:
                logger.error(f"{tool} is not installed and no supported package manager was found")
                ok = False
                continue
            logger.info(f"Installing {tool}")
            if not self._retry(install) or not command_exists(tool):
                logger.error(f"Failed to install {tool}")
                ok = False
        return ok

    # Phase 3: infrastructure

    def network_exists(self) -> bool:
        names = capture_output(
            ["docker", "network", "ls", "--format", "{{.Name}}"],
            timeout=self.config.timeouts.docker_s,
        )
        return names is not None and self.config.registry.network_name in names.splitlines()

    def create_docker_network(self) -> bool:
        if self.network_exists():
            logger.info(f"Docker network '{self.config.registry.network_name}' already exists")
            return True
        return Command(
            ["docker", "network", "create", self.config.registry.network_name],
            timeout=self.config.timeouts.docker_s,
        )()

    def _container_names(self, all_containers: bool) -> list[str]:
        argv = ["docker", "ps", "--format", "{{.Names}}"]
        if all_containers:
            argv.insert(2, "-a")
        names = capture_output(argv, timeout=self.config.timeouts.docker_s)
        return names.splitlines() if names else []

    def registry_ready(self) -> bool:
        try:
            response = self.http_get(self.config.registry.url, timeout=self.config.timeouts.network_s)
        except requests.RequestException:
            return False
        return response.ok

    def wait_for_registry(self) -> bool:
        """Poll the registry URL at a fixed interval until it answers or the timeout passes."""
        registry = self.config.registry
        waited = 0.0
        while waited < self.config.timeouts.registry_s:
            self.cancel_token.raise_if_cancelled()
            if self.registry_ready():
                logger.info(f"Registry is ready at {registry.url}")
                return True
            self.sleep(registry.poll_interval_s)
            waited += registry.poll_interval_s
        logger.error(f"Registry failed to start within {self.config.timeouts.registry_s:.0f}s")
        return False

    def setup_registry(self) -> bool:
        registry = self.config.registry
        if registry.container_name in self._container_names(all_containers=False):
            logger.info("Registry container is already running")
            return True

        timeout = self.config.timeouts.docker_s
        if registry.container_name in self._container_names(all_containers=True):
            start = Command(["docker", "start", registry.container_name], timeout=timeout)
        else:
            start = Command(
                ["docker", "compose", "-f", registry.compose_file, "up", "-d"],
                cwd=self.config.repo_root / "registry",
                timeout=timeout,
            )
        if not self._retry(start):
            return False
        return self.wait_for_registry()

    # Phase 4: dependencies

    def dependencies_installed(self) -> bool:
        return (self.config.repo_root / "node_modules").is_dir()

    def install_dependencies(self) -> bool:
        if not (self.config.repo_root / "package.json").is_file():
            logger.error(f"package.json not found in {self.config.repo_root}")
            return False
        install = Command(["npm", "install"], cwd=self.config.repo_root, timeout=self.config.timeouts.tool_install_s)
        return self._retry(install)

    # Phase 5: environment

    def setup_direnv(self) -> bool:
        envrc = self.config.repo_root / ".envrc"
        if not envrc.exists():
            envrc.write_text(ENVRC_TEMPLATE)
            logger.info(".envrc file created")
        return Command(["direnv", "allow", "."], cwd=self.config.repo_root)()

    # Phase 6: smoke tests

    def test_protoc(self) -> bool:
        protos = self.config.repo_root / "protos"
        proto_files = sorted(protos.glob("*.proto")) if protos.is_dir() else []
        if not proto_files:
            logger.info("protoc test skipped: no .proto files found")
            return True
        with tempfile.TemporaryDirectory() as tmp:
            return Command([
                "protoc",
                f"--descriptor_set_out={Path(tmp) / 'test.pb'}",
                f"--proto_path={protos}",
                str(proto_files[0]),
            ])()

    def test_typescript(self) -> bool:
        if not self.dependencies_installed():
            logger.info("TypeScript test skipped: dependencies not installed")
            return True
        return Command(["npx", "tsc", "--version"], cwd=self.config.repo_root)()


@dataclass(frozen=True)
class SetupStep:
    name: str
    action: Callable[[], bool]
    degraded: bool = False


class BootstrapWorkflow:
    """Runs the bootstrap phases through a StepRunner."""

    def __init__(
        self,
        config: LabConfig,
        runner: StepRunner | None = None,
        actions: SetupActions | None = None,
        stream: TextIO | None = None,
    ):
        self.config = config
        self.runner = runner or StepRunner(CheckpointStore(config.state_file))
        self.actions = actions or SetupActions(config, cancel_token=self.runner.cancel_token)
        self.stream = stream or sys.stdout

    @property
    def store(self) -> CheckpointStore:
        return self.runner.store

    def phases(self) -> list[tuple[str, list[SetupStep]]]:
        a = self.actions
        return [
            ("Environment Validation", [
                SetupStep("VALIDATE_NODEJS", a.validate_nodejs),
                SetupStep("CHECK_PORT_CONFLICTS", a.check_port_conflicts, degraded=True),
                SetupStep("VALIDATE_GIT", a.validate_git),
                SetupStep("VALIDATE_DIRENV", a.validate_direnv),
                SetupStep("VALIDATE_DOCKER", a.validate_docker),
            ]),
            ("Tool Installation", [
                SetupStep("VALIDATE_OS_AND_TOOLS", a.install_tools),
            ]),
            ("Infrastructure Setup", [
                SetupStep("DOCKER_NETWORK_CREATE", a.create_docker_network),
                SetupStep("REGISTRY_SETUP", a.setup_registry),
            ]),
            ("Project Dependencies", [
                SetupStep("DEPENDENCIES_INSTALL", a.install_dependencies),
            ]),
            ("Environment Configuration", [
                SetupStep("DIRENV_SETUP", a.setup_direnv),
            ]),
            ("Testing and Validation", [
                SetupStep("TEST_REGISTRY", a.registry_ready, degraded=True),
                SetupStep("TEST_PROTOC", a.test_protoc, degraded=True),
                SetupStep("TEST_TYPESCRIPT", a.test_typescript, degraded=True),
            ]),
        ]

    def step_names(self) -> list[str]:
        return [step.name for _, steps in self.phases() for step in steps] + ["SETUP_COMPLETE"]

    def consistency_probes(self) -> dict[str, Probe]:
        """Checks that what COMPLETED steps produced still exists."""
        tools = self.config.tools
        return {
            "VALIDATE_OS_AND_TOOLS": lambda: all(command_exists(t) for t in tools),
            "DOCKER_NETWORK_CREATE": self.actions.network_exists,
            "DEPENDENCIES_INSTALL": self.actions.dependencies_installed,
        }

    def run(self) -> BootstrapResult:
        """Run every phase. Raises StepFailedError on the first fatal failure."""
        logger.info("Starting lab development environment setup")
        phases = self.phases()
        for number, (title, steps) in enumerate(phases, start=1):
            logger.info(f"Phase {number}/{len(phases)}: {title}")
            for step in steps:
                if step.degraded:
                    self.runner.run_step_degraded(step.name, step.action)
                else:
                    self.runner.run_step(step.name, step.action)

        self.runner.run_step("SETUP_COMPLETE", lambda: True)

        result = BootstrapResult(
            completed=list(self.runner.completed_steps),
            skipped=list(self.runner.skipped_steps),
            degraded=list(self.runner.degraded_steps),
        )
        self.print_summary(result)

        if self.config.keep_state:
            logger.info(f"Keeping state file {self.store.path}")
        else:
            self.store.reset()
            logger.debug("Setup state cleared")
        return result

    def resume(self) -> BootstrapResult:
        """Continue an interrupted setup after checking recorded state still holds."""
        if not self.store.exists():
            raise StateError("No setup state found. Run 'labctl setup' to start.")
        problems = self.store.find_inconsistencies(self.consistency_probes())
        if problems:
            for problem in problems:
                logger.error(problem)
            raise StateError("Setup state is inconsistent with the system. Run 'labctl reset' and set up again.", problems)
        return self.run()

    def print_summary(self, result: BootstrapResult) -> None:
        out = self.stream
        print("", file=out)
        print("Lab development environment setup complete", file=out)
        print(f"  Steps run: {len(result.completed)}, skipped: {len(result.skipped)}", file=out)
        if result.degraded:
            print("  Noted limitations (degraded steps):", file=out)
            for name in result.degraded:
                print(f"    - {name}", file=out)
        print("", file=out)
        print("Development tools:", file=out)
        for tool in (*self.config.tools, "direnv", "node", "npm", "docker"):
            mark = "ok" if command_exists(tool) else "missing"
            print(f"  {tool}: {mark}", file=out)
        print("", file=out)
        print("Next steps:", file=out)
        print("  - Restart your shell or run: eval \"$(direnv hook bash)\"", file=out)
        print("  - Run 'labctl preflight' to verify every project", file=out)
