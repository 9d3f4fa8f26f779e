"""Utility modules for labctl."""

from .logger import get_logger, setup_logging
from .process_utils import Command, command_exists, get_cpu_cores, resolve_executable

__all__ = [
    "get_logger",
    "setup_logging",
    "Command",
    "command_exists",
    "get_cpu_cores",
    "resolve_executable",
]
