"""
Checkpoint store for bootstrap step state.

One ``NAME=STATUS`` line per step in a small text file at the repository
root. Writes go through a sibling temp file and ``os.replace`` so an
interrupted write leaves either the old or the new content.
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Mapping

from .models import StepStatus
from .utils.logger import get_logger

logger = get_logger("checkpoint")

# A probe answers "is the thing this step produced still there?"
Probe = Callable[[], bool]


class CheckpointStore:
    """Persistent map from step name to StepStatus. Single writer, no locking."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        """Whether any state has been persisted."""
        return self.path.exists()

    def _load(self) -> dict[str, StepStatus]:
        entries: dict[str, StepStatus] = {}
        if not self.path.exists():
            return entries

        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to read state file {self.path}: {e}")
            return entries

        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            name, sep, value = line.partition("=")
            if not sep or not name:
                logger.warning(f"Ignoring malformed state line {lineno}: {line!r}")
                continue
            try:
                entries[name] = StepStatus(value)
            except ValueError:
                logger.warning(f"Unknown status {value!r} for {name}, treating as PENDING")
                entries[name] = StepStatus.PENDING
        return entries

    def _write(self, entries: Mapping[str, StepStatus]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = "".join(f"{name}={status.value}\n" for name, status in entries.items())

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, name: str) -> StepStatus:
        """Status of ``name``; PENDING when unknown or when no state exists."""
        return self._load().get(name, StepStatus.PENDING)

    def set(self, name: str, status: StepStatus) -> None:
        """Record ``status`` for ``name``. Existing entries keep their position."""
        entries = self._load()
        if entries.get(name) == status:
            return
        entries[name] = StepStatus(status)
        self._write(entries)
        logger.debug(f"{name} -> {status.value}")

    def reset(self) -> None:
        """Clear all recorded state."""
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Removed state file {self.path}")

    def entries(self) -> dict[str, StepStatus]:
        """Snapshot of every recorded step in insertion order."""
        return self._load()

    def find_inconsistencies(self, probes: Mapping[str, Probe]) -> list[str]:
        """Check COMPLETED steps against the live system.

        Returns one message per completed step whose probe reports that what
        the step produced is gone. Steps without a probe are trusted.
        """
        problems = []
        for name, status in self._load().items():
            if status != StepStatus.COMPLETED or name not in probes:
                continue
            try:
                ok = probes[name]()
            except Exception as e:
                logger.debug(f"Probe for {name} raised: {e}")
                ok = False
            if not ok:
                problems.append(f"{name} is marked COMPLETED but its result is missing")
        return problems
