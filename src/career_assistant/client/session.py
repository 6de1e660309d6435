"""Client-side view of one generation: live text while streaming, parsed result after.

Both views read the same append-only buffer. The parsed view only exists
once the stream has finished cleanly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from enum import Enum

from career_assistant.models.generation import ExtractionResult
from career_assistant.models.rendered import Block, GapFinding
from career_assistant.pipeline.aggregator import StreamAggregator
from career_assistant.pipeline.extractor import extract_result
from career_assistant.render.gap_renderer import render_gaps
from career_assistant.render.resume_renderer import render_resume

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    PARSED = "parsed"
    FAILED = "failed"


class InvalidStateError(RuntimeError):
    """A session method was called in a state that does not allow it."""


@dataclass(frozen=True)
class ParsedView:
    extraction: ExtractionResult
    resume_blocks: list[Block]
    gaps: list[GapFinding]


class GenerationSession:
    """State machine over IDLE -> STREAMING -> PARSED | FAILED."""

    def __init__(self) -> None:
        self.state = SessionState.IDLE
        self.result: ParsedView | None = None
        self.error: str | None = None
        self._aggregator: StreamAggregator | None = None

    @property
    def live_text(self) -> str:
        return self._aggregator.text if self._aggregator is not None else ""

    def start(self) -> None:
        """Begin a new generation, dropping any previous result or error."""
        if self.state is SessionState.STREAMING:
            raise InvalidStateError("A generation is already streaming")
        self._aggregator = StreamAggregator()
        self.result = None
        self.error = None
        self.state = SessionState.STREAMING

    def feed(self, chunk: str | bytes) -> str:
        self._require(SessionState.STREAMING)
        return self._aggregator.feed(chunk)

    def complete(self) -> ParsedView:
        """Finish the stream and build the parsed view from the final buffer."""
        self._require(SessionState.STREAMING)
        text = self._aggregator.finish()
        extraction = extract_result(text)
        self.result = ParsedView(
            extraction=extraction,
            resume_blocks=render_resume(extraction.resume_text),
            gaps=render_gaps(extraction.gaps_text),
        )
        self.state = SessionState.PARSED
        return self.result

    def fail(self, error: str) -> None:
        """Mark the generation incomplete. Partial text stays visible, nothing is parsed."""
        self._require(SessionState.STREAMING)
        self.result = None
        self.error = error
        self.state = SessionState.FAILED

    def reset(self) -> None:
        self._require(SessionState.IDLE, SessionState.PARSED, SessionState.FAILED)
        self._aggregator = None
        self.result = None
        self.error = None
        self.state = SessionState.IDLE

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidStateError(f"Session is {self.state.value}, expected {allowed}")


async def consume(
    session: GenerationSession,
    chunks: AsyncIterable[bytes | str],
    on_delta: Callable[[str], None] | None = None,
) -> ParsedView:
    """Drive ``session`` from a chunk stream until it is parsed or failed."""
    session.start()
    try:
        async for chunk in chunks:
            delta = session.feed(chunk)
            if delta and on_delta is not None:
                on_delta(delta)
        return session.complete()
    except asyncio.CancelledError:
        session.fail("cancelled")
        raise
    except Exception as exc:
        logger.warning("Generation stream failed: %s", exc)
        session.fail(str(exc) or exc.__class__.__name__)
        raise
