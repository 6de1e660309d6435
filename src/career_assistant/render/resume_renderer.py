"""Rebuild resume structure from the tailored-resume section's plain text.

Line-level heuristics only. Anything that does not look like a heading or a
bullet becomes a paragraph, so odd input degrades instead of failing.
"""

from __future__ import annotations

import re

from jinja2 import Environment

from career_assistant.models.rendered import (
    Block,
    BulletList,
    Heading,
    Paragraph,
    Spacer,
)
from career_assistant.render.inline import format_inline, strip_bold, strip_bullet

_MD_HEADING_RE = re.compile(r"^#{1,3}\s+")
_CAPS_HEADING_RE = re.compile(r"^[A-Z &/\-]{3,}$")

_HTML_TEMPLATE = """\
<div class="resume">
{%- for block in blocks %}
{%- if block.kind == "heading" %}
<h3>{{ block.text }}</h3>
{%- elif block.kind == "bullet_list" %}
<ul>
{%- for item in block.items %}
<li>{{ item | safe }}</li>
{%- endfor %}
</ul>
{%- elif block.kind == "paragraph" %}
<p>{{ block.text | safe }}</p>
{%- else %}
<div class="spacer"></div>
{%- endif %}
{%- endfor %}
</div>
"""

_env = Environment(autoescape=True)
_template = _env.from_string(_HTML_TEMPLATE)


def render_resume(text: str) -> list[Block]:
    """Classify each line of ``text`` into heading, bullet, paragraph or spacer."""
    blocks: list[Block] = []
    items: list[str] | None = None  # open bullet list

    def close_list() -> None:
        nonlocal items
        if items is not None:
            blocks.append(BulletList(items=tuple(items)))
            items = None

    for raw in text.splitlines():
        line = raw.strip()

        if not line:
            close_list()
            blocks.append(Spacer())
            continue

        if _MD_HEADING_RE.match(line):
            close_list()
            heading = _MD_HEADING_RE.sub("", line, count=1)
            blocks.append(Heading(text=strip_bold(heading).strip()))
            continue

        if _CAPS_HEADING_RE.match(line):
            close_list()
            blocks.append(Heading(text=line))
            continue

        item, is_bullet = strip_bullet(line)
        if is_bullet:
            if not item.strip():
                continue  # bare marker
            if items is None:
                items = []
            items.append(format_inline(item.strip()))
            continue

        close_list()
        blocks.append(Paragraph(text=format_inline(line)))

    close_list()
    return blocks


def render_resume_html(blocks: list[Block]) -> str:
    """Render a block tree to HTML. Heading text is escaped here; inline text already was."""
    return _template.render(blocks=blocks)
