"""Turn the gap-analysis section into a list of findings."""

from __future__ import annotations

from career_assistant.models.rendered import GapFinding
from career_assistant.render.inline import format_inline, strip_bold, strip_bullet


def render_gaps(text: str) -> list[GapFinding]:
    """One finding per non-empty line, bullet marker removed, source order kept."""
    findings: list[GapFinding] = []
    for raw in text.splitlines():
        line, _ = strip_bullet(raw.lstrip())
        line = line.strip()
        if not line:
            continue
        findings.append(GapFinding(text=strip_bold(line), html=format_inline(line)))
    return findings
