"""Paginated plain-text PDF export using fpdf2 (pure Python, no system deps)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from fpdf import FPDF

logger = logging.getLogger(__name__)

# Courier glyphs are all 600/1000 em wide
_COURIER_ADVANCE = 0.6

# Characters LLM output often contains that the core fonts cannot encode
_LATIN1_REPLACEMENTS = {
    "•": "-",
    "–": "-",
    "—": "-",
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "…": "...",
    "\t": "    ",
}


@dataclass(frozen=True)
class PageGeometry:
    """A4 page in points with a monospaced font."""

    page_width: float = 595.28
    page_height: float = 841.89
    margin: float = 40.0
    font_family: str = "Courier"
    font_size: float = 10.0
    line_height: float = 14.0

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin

    @property
    def char_width(self) -> float:
        return self.font_size * _COURIER_ADVANCE

    @property
    def max_chars(self) -> int:
        return max(1, math.floor(self.usable_width / self.char_width))


def wrap_line(line: str, max_chars: int) -> list[str]:
    """Greedy word wrap. Words longer than a line are split without hyphens."""
    words = line.split()
    if not words:
        return [" "]

    wrapped: list[str] = []
    current = ""
    for word in words:
        while len(word) > max_chars:
            if current:
                wrapped.append(current)
                current = ""
            wrapped.append(word[:max_chars])
            word = word[max_chars:]
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        else:
            wrapped.append(current)
            current = word
    if current:
        wrapped.append(current)
    return wrapped


def layout_pages(text: str, geometry: PageGeometry | None = None) -> list[list[str]]:
    """Wrap ``text`` and break it into pages of lines.

    Blank lines are kept as single-space lines so vertical spacing survives.
    """
    geometry = geometry or PageGeometry()
    bottom = geometry.page_height - geometry.margin

    pages: list[list[str]] = [[]]
    cursor = geometry.margin
    for raw in text.split("\n"):
        for line in wrap_line(_safe_text(raw), geometry.max_chars):
            if cursor + geometry.line_height > bottom and pages[-1]:
                pages.append([])
                cursor = geometry.margin
            pages[-1].append(line)
            cursor += geometry.line_height
    return pages


def render_pdf(text: str, geometry: PageGeometry | None = None) -> bytes:
    """Lay out ``text`` and return the PDF bytes."""
    geometry = geometry or PageGeometry()
    pages = layout_pages(text, geometry)

    pdf = FPDF(unit="pt", format=(geometry.page_width, geometry.page_height))
    pdf.set_auto_page_break(auto=False)
    pdf.set_margins(geometry.margin, geometry.margin, geometry.margin)
    pdf.set_font(geometry.font_family, size=geometry.font_size)

    for lines in pages:
        pdf.add_page()
        y = geometry.margin
        for line in lines:
            # text() positions the baseline, so drop by one font size
            pdf.text(geometry.margin, y + geometry.font_size, line)
            y += geometry.line_height

    logger.debug("Rendered PDF: %d pages", len(pages))
    buf = BytesIO()
    pdf.output(buf)
    return buf.getvalue()


def save_pdf(text: str, filename: str | Path, geometry: PageGeometry | None = None) -> Path:
    """Render ``text`` and write it to ``filename``."""
    path = Path(filename)
    if path.suffix.lower() != ".pdf":
        path = path.with_suffix(".pdf")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(render_pdf(text, geometry))
    return path


def _safe_text(text: str) -> str:
    """Make text encodable by the built-in Courier font."""
    for src, dst in _LATIN1_REPLACEMENTS.items():
        text = text.replace(src, dst)
    try:
        text.encode("latin-1")
        return text
    except UnicodeEncodeError:
        return text.encode("latin-1", errors="replace").decode("latin-1")
