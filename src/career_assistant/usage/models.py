"""Usage logging data models."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class UsageLog(BaseModel):
    """Single usage log entry for one generation run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    task_id: str
    timestamp: datetime = Field(default_factory=datetime.now)
    model: str
    elapsed_seconds: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    output_chars: int = 0
    estimated_cost_usd: float = 0.0
    gaps_persisted: bool = False
    success: bool = True
    error_message: str | None = None
