"""
Measures narration durations and image dimensions with ffprobe.
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path

from scene_montage.config import FALLBACK_DIMENSIONS
from scene_montage.errors import AssemblyError, ProbeFailure
from scene_montage.executor import ProcessExecutor


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int
    measured: bool = True


class MediaProber:
    def __init__(self, executor: ProcessExecutor, ffprobe_cmd: str = "ffprobe", timeout: float = 30.0):
        self.executor = executor
        self.ffprobe_cmd = ffprobe_cmd
        self.timeout = timeout

    def _probe_json(self, argv) -> dict:
        run = self.executor.run(self.ffprobe_cmd, argv, timeout=self.timeout)
        return json.loads(run.stdout or "{}")

    def audio_duration(self, path: Path) -> float:
        """Container duration in seconds. Any failure here is fatal for the job."""
        argv = ["-v", "error", "-show_entries", "format=duration", "-of", "json", str(path)]
        try:
            data = self._probe_json(argv)
            duration = float(data["format"]["duration"])
        except AssemblyError as e:
            raise ProbeFailure(str(path), str(e)) from e
        except (ValueError, KeyError, TypeError) as e:
            raise ProbeFailure(str(path), f"unparsable duration ({e})") from e

        if not math.isfinite(duration) or duration <= 0:
            raise ProbeFailure(str(path), f"non-positive duration {duration}")
        logging.info(f"⏱️  {path.name}: {duration:.3f}s")
        return duration

    def image_dimensions(self, path: Path) -> ImageDimensions:
        """
        Width and height of the first video stream. Failures do not stop the
        job: the vertical fallback is returned with measured=False so the
        caller can decide whether that is acceptable.
        """
        argv = [
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            str(path),
        ]
        try:
            stream = self._probe_json(argv)["streams"][0]
            width, height = int(stream["width"]), int(stream["height"])
            if width <= 0 or height <= 0:
                raise ValueError(f"non-positive dimensions {width}x{height}")
        except (AssemblyError, ValueError, KeyError, IndexError, TypeError) as e:
            width, height = FALLBACK_DIMENSIONS
            logging.warning(f"⚠️  Could not read dimensions of {path.name} ({e}); assuming {width}x{height}")
            return ImageDimensions(width, height, measured=False)

        logging.info(f"🖼️  {path.name}: {width}x{height}")
        return ImageDimensions(width, height)
