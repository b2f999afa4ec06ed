"""
Domain objects shared across the pipeline: scenes, job specs and outcomes.
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from scene_montage.assets import AssetKind
from scene_montage.config import STATUS_SUFFIX
from scene_montage.formats import CanonicalFormat


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Scene:
    """One image held on screen for the length of one narration clip."""

    image: str
    narration: str
    duration: Optional[float] = None

    def with_duration(self, seconds: float) -> "Scene":
        return replace(self, duration=seconds)


@dataclass(frozen=True)
class JobSpec:
    """A validated job description, ready to run."""

    job_id: str
    output_name: str
    scenes: Tuple[Scene, ...]
    music: Optional[str] = None
    subtitle: Optional[str] = None
    mix_policy: str = "first"

    @property
    def status_key(self) -> str:
        return f"{self.output_name}{STATUS_SUFFIX}"

    def asset_kinds(self) -> Dict[str, AssetKind]:
        """Deduplicated union of every asset the job references."""
        kinds: Dict[str, AssetKind] = {}
        for scene in self.scenes:
            kinds.setdefault(scene.image, AssetKind.IMAGE)
            kinds.setdefault(scene.narration, AssetKind.AUDIO)
        if self.music:
            kinds.setdefault(self.music, AssetKind.AUDIO)
        if self.subtitle:
            kinds.setdefault(self.subtitle, AssetKind.SUBTITLE)
        return kinds


@dataclass(frozen=True)
class RenderResult:
    job_id: str
    output_name: str
    format: CanonicalFormat
    duration: float
    warnings: List[str] = field(default_factory=list)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusRecord:
    """The terminal outcome of a job as published next to its output."""

    status: JobStatus
    output_name: str
    timestamp: datetime
    resolution: Optional[str] = None
    duration: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def completed(cls, result: RenderResult) -> "StatusRecord":
        return cls(
            status=JobStatus.COMPLETED,
            output_name=result.output_name,
            timestamp=utcnow(),
            resolution=result.format.label,
            duration=round(result.duration, 3),
            warnings=list(result.warnings),
        )

    @classmethod
    def failed(cls, output_name: str, error: str) -> "StatusRecord":
        return cls(status=JobStatus.FAILED, output_name=output_name, timestamp=utcnow(), error=error)

    def to_dict(self) -> dict:
        payload = {
            "status": self.status.value,
            "outputName": self.output_name,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.status is JobStatus.COMPLETED:
            payload.update(resolution=self.resolution, duration=self.duration, warnings=self.warnings)
        else:
            payload["error"] = self.error
        return payload
