"""
Job-scoped scratch directories.
Every file a job touches lives under one workspace root, which is removed
when the job ends.
"""

import hashlib
import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import Optional

from scene_montage.errors import PathTraversal

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,10}$")
_ARTIFACT_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class WorkspaceManager:
    """Allocates, resolves paths inside, and destroys one job workspace."""

    def __init__(self, base_dir: Path, max_name_length: int = 100):
        self.base_dir = Path(base_dir)
        self.max_name_length = max_name_length
        self.root: Optional[Path] = None

    def allocate(self) -> Path:
        if self.root is not None:
            return self.root
        self.base_dir.mkdir(parents=True, exist_ok=True)
        # uuid rather than the output name: two jobs for one output never share a workspace
        root = (self.base_dir / f"job_{uuid.uuid4().hex}").resolve()
        root.mkdir()
        self.root = root
        logging.info(f"📁 Allocated workspace {root}")
        return root

    def _require_root(self) -> Path:
        if self.root is None:
            raise RuntimeError("Workspace has not been allocated.")
        return self.root

    def sanitize(self, logical_name: str) -> str:
        stem, _ = os.path.splitext(logical_name)
        safe = _UNSAFE_CHARS.sub("_", stem).strip("_-")[: self.max_name_length] or "asset"
        # Distinct logical names must never collapse onto the same file.
        digest = hashlib.sha1(logical_name.encode("utf-8")).hexdigest()[:8]
        return f"{safe}-{digest}"

    def resolve(self, logical_name: str, suffix: str = "") -> Path:
        """Map an externally supplied name to a file strictly inside the workspace."""
        root = self._require_root()
        if not _SAFE_SUFFIX.match(suffix or ""):
            suffix = ""
        candidate = (root / f"{self.sanitize(logical_name)}{suffix.lower()}").resolve()
        self._check_inside(candidate, logical_name)
        return candidate

    def artifact(self, name: str) -> Path:
        """Path for a pipeline-generated file such as 'clip-000.mp4'."""
        root = self._require_root()
        if not _ARTIFACT_NAME.match(name):
            raise PathTraversal(name)
        candidate = (root / name).resolve()
        self._check_inside(candidate, name)
        return candidate

    def _check_inside(self, candidate: Path, name: str) -> None:
        prefix = str(self.root) + os.sep
        if not str(candidate).startswith(prefix):
            raise PathTraversal(name)

    def destroy(self) -> None:
        """Remove the workspace. Safe to call repeatedly; never raises."""
        root, self.root = self.root, None
        if root is None:
            return
        try:
            shutil.rmtree(root)
            logging.info(f"🧹 Removed workspace {root}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.warning(f"Could not remove workspace {root}: {e}")

    def __enter__(self) -> "WorkspaceManager":
        self.allocate()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()
