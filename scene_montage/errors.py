"""
Exception taxonomy for the assembly pipeline.
Every error carries the HTTP status code the request layer answers with.
"""

from typing import Optional


class AssemblyError(Exception):
    """Base class for every failure a job can end with."""

    status_code = 500


class InvalidPayload(AssemblyError):
    """The job description is missing fields or names something unsafe."""

    status_code = 400


class PathTraversal(InvalidPayload):
    """A name resolved to a location outside its workspace."""

    def __init__(self, name: str):
        super().__init__(f"Name escapes the workspace: {name!r}")
        self.name = name


class DuplicateJob(AssemblyError):
    status_code = 409

    def __init__(self, output_name: str):
        super().__init__(f"A job for '{output_name}' is already in progress.")
        self.output_name = output_name


class StorageError(Exception):
    """Raised by blob stores; callers convert it into a job-level error."""


class AssetUnavailable(AssemblyError):
    def __init__(self, name: str, reason: str = ""):
        message = f"Asset unavailable: '{name}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.name = name


class ProbeFailure(AssemblyError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not probe '{path}': {reason}")
        self.path = path


class SubprocessFailure(AssemblyError):
    def __init__(self, tool: str, code: int, stderr: str):
        last_line = stderr.strip().splitlines()[-1] if stderr.strip() else "no diagnostic output"
        super().__init__(f"{tool} exited with code {code}: {last_line}")
        self.tool = tool
        self.code = code
        self.stderr = stderr


class SubprocessTimeout(AssemblyError):
    def __init__(self, tool: str, timeout: float):
        super().__init__(f"{tool} timed out after {timeout:g}s")
        self.tool = tool
        self.timeout = timeout


class SpawnError(AssemblyError):
    def __init__(self, tool: str, reason: Optional[str] = None):
        super().__init__(f"Could not start {tool}: {reason or 'unknown error'}")
        self.tool = tool


class UploadFailure(AssemblyError):
    def __init__(self, name: str, reason: str = ""):
        message = f"Upload failed for '{name}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.name = name
