"""
Command Line Interface for labctl.

setup / resume / status / reset drive the checkpointed bootstrap;
preflight runs staged verification across the workspace.
"""

import argparse
import asyncio
import signal
import sys
from contextlib import contextmanager
from pathlib import Path

from . import __version__
from .bootstrap import BootstrapWorkflow
from .checkpoint import CheckpointStore
from .config import LabConfig, SchedulerConfig
from .preflight import PreflightRunner
from .recovery import RecoveryGuard
from .step_runner import CancellationToken, StepRunner
from .utils.logger import get_logger, setup_logging

logger = get_logger("cli")

ROOT_MARKERS = (".setup_state", ".git", "package.json")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="labctl",
        description="Bootstrap the lab workspace and verify every project in it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s setup
  %(prog)s setup --keep-state
  %(prog)s status
  %(prog)s resume
  %(prog)s preflight --max-workers 4
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--repo-root",
        type=str,
        default=None,
        help="Workspace root directory (default: nearest parent with a marker)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    setup_parser = subparsers.add_parser("setup", help="Set up the development environment")
    setup_parser.add_argument(
        "--keep-state",
        action="store_true",
        help="Keep the setup state file after a successful run",
    )

    resume_parser = subparsers.add_parser("resume", help="Resume an interrupted setup")
    resume_parser.add_argument(
        "--keep-state",
        action="store_true",
        help="Keep the setup state file after a successful run",
    )

    subparsers.add_parser("status", help="Show recorded setup step state")
    subparsers.add_parser("reset", help="Clear recorded setup state")

    preflight_parser = subparsers.add_parser("preflight", help="Run staged verification across all projects")
    preflight_parser.add_argument(
        "--max-workers", "-j",
        type=int,
        default=None,
        help="Maximum consumers verified in parallel (default: CPU count)",
    )

    return parser


def get_repo_root(args) -> Path:
    """Determine the workspace root."""
    if getattr(args, "repo_root", None):
        return Path(args.repo_root).resolve()

    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        if any((path / marker).exists() for marker in ROOT_MARKERS):
            return path

    return cwd


def build_config(args) -> LabConfig:
    return LabConfig(
        repo_root=get_repo_root(args),
        keep_state=getattr(args, "keep_state", False),
        verbose=args.verbose,
        scheduler=SchedulerConfig(max_workers=getattr(args, "max_workers", None)),
    )


@contextmanager
def cancel_on_signal(token: CancellationToken):
    """Route SIGINT/SIGTERM to ``token`` for the duration of a command."""
    def handle_signal(signum, frame):
        logger.warning(f"Received signal {signum}, cancelling...")
        token.cancel()

    previous = {sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def run_setup(config: LabConfig, resume: bool = False) -> int:
    token = CancellationToken()
    runner = StepRunner(CheckpointStore(config.state_file), token)
    workflow = BootstrapWorkflow(config, runner)

    with RecoveryGuard(runner), cancel_on_signal(token):
        if resume:
            workflow.resume()
        else:
            workflow.run()
    return 0


def show_status(config: LabConfig) -> int:
    """Print recorded step state without changing it."""
    store = CheckpointStore(config.state_file)
    if not store.exists():
        print("No setup state found. Run 'labctl setup' to start.")
        return 0

    entries = store.entries()
    print(f"Setup state ({store.path}):")
    for name in BootstrapWorkflow(config, StepRunner(store)).step_names():
        status = entries.pop(name, None)
        print(f"  {name:<24} {status.value if status else 'PENDING'}")
    for name, status in entries.items():
        print(f"  {name:<24} {status.value}")
    return 0


def reset_state(config: LabConfig) -> int:
    CheckpointStore(config.state_file).reset()
    print("Setup state cleared. Run 'labctl setup' to start fresh.")
    return 0


def run_preflight(config: LabConfig) -> int:
    token = CancellationToken()
    runner = PreflightRunner(config, cancel_token=token)

    with RecoveryGuard(), cancel_on_signal(token):
        return asyncio.run(runner.run())


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if args.command == "setup":
        return run_setup(config)
    elif args.command == "resume":
        return run_setup(config, resume=True)
    elif args.command == "status":
        return show_status(config)
    elif args.command == "reset":
        return reset_state(config)
    elif args.command == "preflight":
        return run_preflight(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
