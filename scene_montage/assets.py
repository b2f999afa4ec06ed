"""
Fetches the named assets of a job into its workspace.
"""

import enum
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Mapping

from scene_montage.errors import AssetUnavailable, StorageError

if TYPE_CHECKING:
    from scene_montage.storage import BlobStore
    from scene_montage.workspace import WorkspaceManager


class AssetKind(str, enum.Enum):
    IMAGE = "image"
    AUDIO = "audio"
    SUBTITLE = "subtitle"


DEFAULT_SUFFIXES = {
    AssetKind.IMAGE: ".jpg",
    AssetKind.AUDIO: ".mp3",
    AssetKind.SUBTITLE: ".srt",
}

KNOWN_SUFFIXES = {
    AssetKind.IMAGE: {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif", ".tif", ".tiff"},
    AssetKind.AUDIO: {".mp3", ".wav", ".m4a", ".aac", ".ogg", ".opus", ".flac"},
    AssetKind.SUBTITLE: {".srt"},
}


def suffix_for(name: str, kind: AssetKind) -> str:
    """Keep a recognised extension; otherwise use the default for the kind."""
    ext = os.path.splitext(name)[1].lower()
    if ext in KNOWN_SUFFIXES[kind]:
        return ext
    return DEFAULT_SUFFIXES[kind]


@dataclass(frozen=True)
class Asset:
    name: str
    kind: AssetKind
    path: Path


class AssetResolver:
    """Downloads each unique asset exactly once, on a bounded thread pool."""

    def __init__(self, store: "BlobStore", max_workers: int = 8, timeout: float = 120.0):
        self.store = store
        self.max_workers = max_workers
        self.timeout = timeout

    def _fetch(self, workspace: "WorkspaceManager", name: str, kind: AssetKind) -> Asset:
        destination = workspace.resolve(name, suffix_for(name, kind))
        self.store.download(name, destination, timeout=self.timeout)
        logging.info(f"⬇️  Downloaded {name} -> {destination.name}")
        return Asset(name=name, kind=kind, path=destination)

    def resolve(self, workspace: "WorkspaceManager", assets: Mapping[str, AssetKind]) -> Dict[str, Asset]:
        """
        Fetch every asset or none. The first failed download cancels the ones
        not yet started and is reported as AssetUnavailable.
        """
        if not assets:
            return {}

        resolved: Dict[str, Asset] = {}
        workers = min(self.max_workers, len(assets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="download") as pool:
            futures = {pool.submit(self._fetch, workspace, name, kind): name for name, kind in assets.items()}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    resolved[name] = future.result()
                except (StorageError, OSError) as e:
                    for pending in futures:
                        pending.cancel()
                    logging.error(f"❌ Could not fetch {name}: {e}")
                    raise AssetUnavailable(name, str(e)) from e
        return resolved
