"""
Pydantic models for the request boundary of the scene montage service.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field


class SceneIn(BaseModel):
    """One scene of a job: an image and the narration played over it."""
    image: Optional[str] = Field(None, validation_alias=AliasChoices("image", "imagem"))
    narration: Optional[str] = Field(None, validation_alias=AliasChoices("narration", "narracao"))


class AssembleRequest(BaseModel):
    """Job description. The original service's Portuguese field names are accepted too."""
    scenes: List[SceneIn] = Field(default_factory=list, validation_alias=AliasChoices("scenes", "cenas"))
    music: Optional[str] = Field(None, validation_alias=AliasChoices("music", "musica"))
    subtitle: Optional[str] = Field(None, validation_alias=AliasChoices("subtitle", "legenda"))
    output_file: Optional[str] = Field(None, validation_alias=AliasChoices("outputFile", "output_file"))
    mix_policy: Optional[Literal["first", "longest"]] = Field(
        None, validation_alias=AliasChoices("mixPolicy", "mix_policy")
    )


class AssembleResponse(BaseModel):
    """Response of the synchronous endpoint."""
    message: str
    output_file: str = Field(serialization_alias="outputFile")
    resolution: str
    duration: float
    warnings: List[str] = []


class JobResponse(BaseModel):
    """Response when submitting a background assembly job."""
    job_id: str
    status: str  # "pending"
    status_location: str


class StatusResponse(BaseModel):
    """Response for checking background job status."""
    job_id: str
    status: str  # "pending" | "running" | "completed" | "failed"
    resolution: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    warnings: List[str] = []
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
