"""Data models for the career assistant."""

from career_assistant.models.generation import ExtractionResult, GenerationRequest
from career_assistant.models.rendered import (
    Block,
    BulletList,
    GapFinding,
    Heading,
    Paragraph,
    Spacer,
)
from career_assistant.models.task import Task

__all__ = [
    "Block",
    "BulletList",
    "ExtractionResult",
    "GapFinding",
    "GenerationRequest",
    "Heading",
    "Paragraph",
    "Spacer",
    "Task",
]
