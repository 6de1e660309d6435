"""Inline formatting shared by the resume and gap renderers."""

from __future__ import annotations

import html
import re

from markupsafe import Markup

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_BULLET_RE = re.compile(r"^[-•*](?:\s+|$)")


def format_inline(text: str) -> Markup:
    """Escape ``<``, ``>`` and ``&``, then turn ``**x**`` into ``<strong>x</strong>``.

    Escaping runs first so source text can never inject markup.
    """
    escaped = html.escape(text, quote=False)
    return Markup(_BOLD_RE.sub(r"<strong>\1</strong>", escaped))


def strip_bold(text: str) -> str:
    return _BOLD_RE.sub(r"\1", text)


def strip_bullet(line: str) -> tuple[str, bool]:
    """Remove one leading bullet marker. Returns (text, had_marker)."""
    match = _BULLET_RE.match(line)
    if match is None:
        return line, False
    return line[match.end():], True
