"""
Runs external media tools as literal argument vectors.
"""

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Sequence

from scene_montage.errors import SpawnError, SubprocessFailure, SubprocessTimeout


@dataclass(frozen=True)
class CompletedRun:
    tool: str
    argv: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    elapsed: float


class ProcessExecutor:
    """
    Thin wrapper around subprocess.run. Commands are never handed to a shell,
    so asset names and subtitle text stay plain arguments. A call that
    outlives its timeout is killed before SubprocessTimeout is raised.
    """

    def run(self, tool: str, argv: Sequence[str], timeout: float) -> CompletedRun:
        command = [tool, *[str(arg) for arg in argv]]
        logging.info(f"🎬 Running: {shlex.join(command)}")
        started = time.monotonic()
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
                check=True,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.CalledProcessError as e:
            stderr = e.stderr or ""
            logging.error(f"❌ {tool} failed with code {e.returncode}. Stderr:\n{stderr.strip()}")
            raise SubprocessFailure(tool, e.returncode, stderr) from e
        except subprocess.TimeoutExpired as e:
            logging.error(f"❌ {tool} timed out after {timeout:g}s.")
            raise SubprocessTimeout(tool, timeout) from e
        except OSError as e:
            raise SpawnError(tool, str(e)) from e

        elapsed = time.monotonic() - started
        logging.info(f"✅ {tool} finished in {elapsed:.1f}s")
        return CompletedRun(
            tool=tool,
            argv=tuple(command[1:]),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            elapsed=elapsed,
        )
