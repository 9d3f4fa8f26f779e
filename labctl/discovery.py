"""
Task discovery: find workspace projects that declare a verify script.

Projects are found under the configured category directories and at the
workspace root. Anything without a readable manifest declaring the
capability is skipped silently.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .config import SchedulerConfig
from .models import Task, TaskRole
from .utils.logger import get_logger

logger = get_logger("discovery")


class TaskProvider(Protocol):
    """Anything that can list verification tasks in discovery order."""

    def discover(self) -> list[Task]:
        ...


@dataclass(frozen=True)
class Manifest:
    """The parts of a project manifest discovery cares about."""
    path: Path
    scripts: dict
    role: str | None = None

    def script(self, capability: str) -> str | None:
        value = self.scripts.get(capability)
        return value if isinstance(value, str) and value.strip() else None


class ManifestReader:
    """Parses ``package.json``-style manifests."""

    def __init__(self, manifest_name: str = "package.json"):
        self.manifest_name = manifest_name

    def read(self, directory: Path) -> Manifest | None:
        """Manifest in ``directory``, or None if missing or unreadable."""
        path = Path(directory) / self.manifest_name
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Skipping unreadable manifest {path}: {e}")
            return None
        if not isinstance(data, dict):
            return None

        scripts = data.get("scripts")
        lab = data.get("lab")
        role = lab.get("role") if isinstance(lab, dict) else None
        return Manifest(
            path=path,
            scripts=scripts if isinstance(scripts, dict) else {},
            role=role if isinstance(role, str) else None,
        )


class WorkspaceTaskProvider:
    """Walks a workspace and returns one Task per verifiable project."""

    def __init__(self, repo_root: Path, config: SchedulerConfig | None = None, reader: ManifestReader | None = None):
        self.repo_root = Path(repo_root).resolve()
        self.config = config or SchedulerConfig()
        self.reader = reader or ManifestReader(self.config.manifest_name)

    def _is_ignored(self, name: str) -> bool:
        return name.startswith(".") or name in self.config.ignore_dirs

    def _candidate_dirs(self) -> list[Path]:
        candidates = []
        for category in self.config.category_dirs:
            base = self.repo_root / category
            if not base.is_dir():
                logger.debug(f"Category directory missing: {category}")
                continue
            for current, dirnames, filenames in os.walk(base):
                dirnames[:] = sorted(d for d in dirnames if not self._is_ignored(d))
                if self.config.manifest_name in filenames:
                    candidates.append(Path(current))
        if self.config.include_root:
            candidates.append(self.repo_root)
        return candidates

    def _relative(self, directory: Path) -> str:
        rel = directory.relative_to(self.repo_root).as_posix()
        return "" if rel == "." else rel

    def _role(self, rel_path: str, manifest: Manifest) -> TaskRole:
        for producer in self.config.producer_paths:
            if rel_path == producer or rel_path.endswith("/" + producer):
                return TaskRole.PRODUCER
        if manifest.role == TaskRole.PRODUCER.value:
            return TaskRole.PRODUCER
        return TaskRole.CONSUMER

    def discover(self) -> list[Task]:
        found: list[tuple[str, Path, TaskRole, str]] = []
        for directory in self._candidate_dirs():
            manifest = self.reader.read(directory)
            if manifest is None:
                continue
            script = manifest.script(self.config.capability)
            if script is None:
                logger.debug(f"No '{self.config.capability}' script in {manifest.path}")
                continue
            rel = self._relative(directory)
            found.append((rel, directory, self._role(rel, manifest), script))

        # Basename is the id; fall back to the relative path when two share it
        names = [Path(rel).name or self.repo_root.name for rel, *_ in found]
        tasks = []
        for (rel, directory, role, script), name in zip(found, names):
            identifier = name if names.count(name) == 1 else (rel or name).replace("/", "-")
            tasks.append(Task(identifier=identifier, directory=directory, role=role, verify_script=script))

        logger.info(f"Discovered {len(tasks)} verifiable projects")
        for task in tasks:
            logger.debug(f"  {task.identifier} ({task.role.value}) at {task.directory}")
        return tasks
