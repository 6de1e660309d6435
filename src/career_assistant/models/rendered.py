"""Render-tree nodes produced from the resume and gap sections."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class Heading(_Node):
    kind: Literal["heading"] = "heading"
    text: str


class BulletList(_Node):
    kind: Literal["bullet_list"] = "bullet_list"
    items: tuple[str, ...]  # inline-formatted markup


class Paragraph(_Node):
    kind: Literal["paragraph"] = "paragraph"
    text: str  # inline-formatted markup


class Spacer(_Node):
    kind: Literal["spacer"] = "spacer"


Block = Union[Heading, BulletList, Paragraph, Spacer]


class GapFinding(_Node):
    text: str  # bullet marker stripped, trimmed
    html: str  # escaped with emphasis applied
