"""Pydantic models for one generation request and its parsed result."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class GenerationRequest(BaseModel):
    owner_id: str
    task_id: str
    profile_text: str
    job_text: str

    def is_complete(self) -> bool:
        """True when both text fields are non-empty after trimming."""
        return bool(self.profile_text.strip()) and bool(self.job_text.strip())


class ExtractionResult(BaseModel):
    """Both sections of a finished document, already trimmed."""

    model_config = ConfigDict(frozen=True)

    resume_text: str
    gaps_text: str
