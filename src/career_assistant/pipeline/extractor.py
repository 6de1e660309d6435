"""Locate tagged regions inside a (possibly partial) model response."""

from __future__ import annotations

import re
from functools import lru_cache

from career_assistant.models.generation import ExtractionResult

RESUME_TAG = "TAILORED_RESUME"
GAPS_TAG = "GAP_ANALYSIS"


@lru_cache(maxsize=16)
def _region_pattern(name: str) -> re.Pattern[str]:
    tag = re.escape(name)
    return re.compile(rf"<{tag}>(.*?)</{tag}>", re.DOTALL)


def extract_section(text: str, name: str) -> str | None:
    """Return the trimmed text between the first ``<name>`` and its closing tag.

    Returns ``None`` when either tag has not arrived yet, so it is safe to
    call on a buffer that is still growing. Every call scans from the start.
    """
    match = _region_pattern(name).search(text)
    if match is None:
        return None
    return match.group(1).strip()


def extract_result(text: str) -> ExtractionResult:
    """Split a finished response into resume and gap sections.

    A missing resume region falls back to the whole trimmed text; a missing
    gap region becomes an empty string.
    """
    resume = extract_section(text, RESUME_TAG)
    gaps = extract_section(text, GAPS_TAG)
    return ExtractionResult(
        resume_text=resume if resume is not None else text.strip(),
        gaps_text=gaps or "",
    )
