"""Pydantic models for stored tasks."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class Task(BaseModel):
    """A target job plus the owner's existing profile text."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    name: str
    company: str
    notes: str | None = None
    existing_profile: str | None = None
    job_description: str | None = None
    gaps: str | None = None  # trimmed gap-analysis section of the last successful generation
    created_at: datetime = Field(default_factory=datetime.now)
