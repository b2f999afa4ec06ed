# models.py

import json

from sqlalchemy import Column, DateTime, Float, String, Text

from scene_montage.database import Base


class Job(Base):
    """Ledger row tracking one assembly job from acceptance to its terminal status."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, index=True)  # the validated output name
    status = Column(String, default="pending")  # pending, running, completed, failed
    resolution = Column(String, nullable=True)
    duration = Column(Float, nullable=True)
    error = Column(Text, nullable=True)
    warnings_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def warnings(self):
        return json.loads(self.warnings_json) if self.warnings_json else []
