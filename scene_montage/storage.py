"""
Blob store adapters.
Both expose the same two calls scoped to one container:
download(name, destination) and upload(name, file-or-bytes).
"""

import logging
import mimetypes
import os
import shutil
import time
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

import requests

from scene_montage.config import Settings
from scene_montage.errors import StorageError

Content = Union[Path, bytes]

_CHUNK_SIZE = 1024 * 1024


def _check_deadline(name: str, deadline: float, timeout: float) -> None:
    if time.monotonic() > deadline:
        raise StorageError(f"Download of '{name}' exceeded {timeout:g}s")


class BlobStore:
    """Interface shared by the blob store adapters."""

    def download(self, name: str, destination: Path, timeout: float) -> Path:
        raise NotImplementedError

    def upload(self, name: str, content: Content, timeout: float) -> None:
        raise NotImplementedError


class HttpBlobStore(BlobStore):
    """Container reached over HTTP, e.g. an Azure container URL plus a SAS token."""

    def __init__(self, container_url: str, sas_token: Optional[str] = None, session: Optional[requests.Session] = None):
        self.container_url = container_url.rstrip("/")
        self.sas_token = (sas_token or "").lstrip("?")
        self.session = session or requests.Session()

    def _url(self, name: str) -> str:
        url = f"{self.container_url}/{quote(name, safe='/')}"
        if self.sas_token:
            url = f"{url}?{self.sas_token}"
        return url

    def download(self, name: str, destination: Path, timeout: float) -> Path:
        # requests applies the timeout per socket read; the deadline bounds the whole transfer.
        deadline = time.monotonic() + timeout
        try:
            with self.session.get(self._url(name), stream=True, timeout=timeout) as response:
                response.raise_for_status()
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        _check_deadline(name, deadline, timeout)
                        f.write(chunk)
        except requests.RequestException as e:
            raise StorageError(f"Download of '{name}' failed: {e}") from e
        return destination

    def upload(self, name: str, content: Content, timeout: float) -> None:
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        headers = {"x-ms-blob-type": "BlockBlob", "Content-Type": content_type}
        try:
            if isinstance(content, bytes):
                response = self.session.put(self._url(name), data=content, headers=headers, timeout=timeout)
            else:
                headers["Content-Length"] = str(os.path.getsize(content))
                with open(content, "rb") as f:
                    response = self.session.put(self._url(name), data=f, headers=headers, timeout=timeout)
            response.raise_for_status()
        except (requests.RequestException, OSError) as e:
            raise StorageError(f"Upload of '{name}' failed: {e}") from e


class LocalBlobStore(BlobStore):
    """Container backed by a local directory, for development and tests."""

    def __init__(self, root: Path, container: str = "videos"):
        self.root = (Path(root) / container).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if not str(path).startswith(str(self.root) + os.sep):
            raise StorageError(f"Blob name escapes the container: {name!r}")
        return path

    def download(self, name: str, destination: Path, timeout: float) -> Path:
        source = self._blob_path(name)
        if not source.is_file():
            raise StorageError(f"Blob not found: '{name}'")
        deadline = time.monotonic() + timeout
        try:
            with open(source, "rb") as src, open(destination, "wb") as dst:
                for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
                    _check_deadline(name, deadline, timeout)
                    dst.write(chunk)
        except OSError as e:
            raise StorageError(f"Download of '{name}' failed: {e}") from e
        return destination

    def upload(self, name: str, content: Content, timeout: float) -> None:
        target = self._blob_path(name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                shutil.copyfile(content, target)
        except OSError as e:
            raise StorageError(f"Upload of '{name}' failed: {e}") from e


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.storage_backend == "http":
        if not settings.container_url:
            raise ValueError("MONTAGE_CONTAINER_URL is required for the http storage backend.")
        logging.info(f"Using HTTP blob container {settings.container_url}")
        return HttpBlobStore(settings.container_url, settings.sas_token)
    logging.info(f"Using local blob container {settings.local_storage_dir / settings.container}")
    return LocalBlobStore(settings.local_storage_dir, settings.container)
