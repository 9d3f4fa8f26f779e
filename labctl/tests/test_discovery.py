"""
Tests for task discovery:
- Only projects with a verify script become tasks
- node_modules and hidden directories are never searched
- Producer roles from the allow-list and from the manifest
"""

import json
from pathlib import Path

from ..config import SchedulerConfig
from ..discovery import ManifestReader, WorkspaceTaskProvider
from ..models import TaskRole


def write_manifest(directory: Path, scripts: dict | None = None, **extra) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    data = {"name": directory.name, **extra}
    if scripts is not None:
        data["scripts"] = scripts
    (directory / "package.json").write_text(json.dumps(data))


class TestManifestReader:
    """Tests for manifest parsing."""

    def test_reads_scripts_and_role(self, tmp_path):
        write_manifest(tmp_path, {"verify": "npm test"}, lab={"role": "producer"})
        manifest = ManifestReader().read(tmp_path)
        assert manifest.script("verify") == "npm test"
        assert manifest.role == "producer"

    def test_missing_manifest(self, tmp_path):
        assert ManifestReader().read(tmp_path) is None

    def test_invalid_json(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json")
        assert ManifestReader().read(tmp_path) is None

    def test_blank_script_is_absent(self, tmp_path):
        write_manifest(tmp_path, {"verify": "  "})
        assert ManifestReader().read(tmp_path).script("verify") is None


class TestWorkspaceTaskProvider:
    """Tests for walking a workspace."""

    def test_only_verifiable_projects_are_tasks(self, tmp_path):
        write_manifest(tmp_path / "libs" / "a", {"verify": "true"})
        write_manifest(tmp_path / "libs" / "b", {"build": "tsc"})
        (tmp_path / "services" / "c").mkdir(parents=True)
        write_manifest(tmp_path / "apis" / "d", {"verify": "true"})

        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        assert [t.identifier for t in tasks] == ["a", "d"]

    def test_node_modules_never_searched(self, tmp_path):
        write_manifest(tmp_path / "libs" / "a", {"verify": "true"})
        write_manifest(tmp_path / "libs" / "a" / "node_modules" / "dep", {"verify": "true"})
        write_manifest(tmp_path / "libs" / ".cache" / "x", {"verify": "true"})

        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        assert [t.identifier for t in tasks] == ["a"]

    def test_root_manifest_is_included(self, tmp_path):
        write_manifest(tmp_path, {"verify": "true"})
        tasks = WorkspaceTaskProvider(tmp_path).discover()
        assert len(tasks) == 1
        assert tasks[0].directory == tmp_path.resolve()

    def test_order_is_categories_then_sorted(self, tmp_path):
        write_manifest(tmp_path / "apis" / "z", {"verify": "true"})
        write_manifest(tmp_path / "libs" / "m", {"verify": "true"})
        write_manifest(tmp_path / "libs" / "b", {"verify": "true"})
        write_manifest(tmp_path / "services" / "s", {"verify": "true"})

        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        assert [t.identifier for t in tasks] == ["b", "m", "s", "z"]

    def test_allow_listed_path_is_producer(self, tmp_path):
        write_manifest(tmp_path / "libs" / "grpc-client-generator", {"verify": "true"})
        write_manifest(tmp_path / "apis" / "user-api", {"verify": "true"})

        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        roles = {t.identifier: t.role for t in tasks}
        assert roles == {"grpc-client-generator": TaskRole.PRODUCER, "user-api": TaskRole.CONSUMER}

    def test_manifest_role_is_producer(self, tmp_path):
        write_manifest(tmp_path / "libs" / "codegen", {"verify": "true"}, lab={"role": "producer"})
        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        assert tasks[0].is_producer

    def test_duplicate_names_use_relative_path(self, tmp_path):
        write_manifest(tmp_path / "libs" / "common", {"verify": "true"})
        write_manifest(tmp_path / "services" / "common", {"verify": "true"})

        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        assert [t.identifier for t in tasks] == ["libs-common", "services-common"]

    def test_verify_script_is_captured(self, tmp_path):
        write_manifest(tmp_path / "libs" / "a", {"verify": "vitest run"})
        tasks = WorkspaceTaskProvider(tmp_path, SchedulerConfig(include_root=False)).discover()
        assert tasks[0].verify_script == "vitest run"
