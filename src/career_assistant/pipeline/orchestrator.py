"""Generation orchestrator - streams one tailored resume + gap analysis run."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager

from career_assistant.clients.llm_client import DEFAULT_MODEL, LLMClient, StreamUsage
from career_assistant.exceptions import (
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
)
from career_assistant.models.generation import GenerationRequest
from career_assistant.models.task import Task
from career_assistant.pipeline.aggregator import StreamAggregator
from career_assistant.pipeline.extractor import GAPS_TAG, RESUME_TAG, extract_section
from career_assistant.storage.task_store import TaskStore
from career_assistant.usage.cost_calculator import calculate_cost
from career_assistant.usage.models import UsageLog
from career_assistant.usage.usage_store import UsageStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert resume writer and career coach."

USER_PROMPT = """\
Given the candidate's existing profile and the job description below, produce two outputs.

<EXISTING_PROFILE>
{profile}
</EXISTING_PROFILE>

<JOB_DESCRIPTION>
{job}
</JOB_DESCRIPTION>

Format your response EXACTLY as follows, including the XML tags exactly as shown:

<{resume_tag}>
Rewrite the candidate's resume to best match the job requirements. Use relevant keywords \
and phrases from the JD. Reorganise and emphasise experiences that align with the role. \
Do not fabricate skills or experience.
</{resume_tag}>

<{gaps_tag}>
List the specific skills, experiences, certifications, tools, or qualifications required \
by the JD that are absent or underrepresented in the candidate's profile. Be specific and \
actionable.
</{gaps_tag}>"""


def build_user_prompt(profile: str, job: str) -> str:
    """Embed profile and job text verbatim in the user instruction."""
    # str.format does not re-scan substituted values, so braces in the texts are safe
    return USER_PROMPT.format(
        profile=profile,
        job=job,
        resume_tag=RESUME_TAG,
        gaps_tag=GAPS_TAG,
    )


class GenerationOrchestrator:
    """Drives a generation end to end: stream, forward, extract, persist gaps.

    Runs against the same task are serialized by a per-task lock held for the
    whole stream, so gap writes for one task land in request order within
    this process. Separate processes fall back to last write wins.
    """

    def __init__(
        self,
        llm: LLMClient,
        store: TaskStore,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 8192,
        usage_store: UsageStore | None = None,
    ):
        self.llm = llm
        self.store = store
        self.model = model
        self.max_tokens = max_tokens
        self.usage_store = usage_store
        self._locks: dict[str, list] = {}  # task_id -> [lock, holders]

    def prepare(self, request: GenerationRequest, caller_id: str | None) -> Task:
        """Check caller, input and task ownership before any model call.

        Reads the store synchronously; async callers run it via ``asyncio.to_thread``.
        """
        if not caller_id or caller_id != request.owner_id:
            raise UnauthorizedError("Unauthorized")
        if not request.is_complete():
            raise InvalidInputError("Both profile and job description are required.")
        task = self.store.get_task(request.task_id, request.owner_id)
        if task is None:
            raise NotFoundError("Task not found.")
        return task

    async def generate(
        self,
        request: GenerationRequest,
        caller_id: str | None,
    ) -> AsyncIterator[str]:
        """Yield raw model text as it arrives; save the gap section on success.

        Raises:
            UnauthorizedError, InvalidInputError, NotFoundError: before the
                first delta, without contacting the model.
            UpstreamError: the model call failed mid-way. Nothing is saved.
        """
        await asyncio.to_thread(self.prepare, request, caller_id)
        async with self._task_lock(request.task_id):
            async with aclosing(self._stream(request)) as deltas:
                async for delta in deltas:
                    yield delta

    async def _stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        usage = StreamUsage()
        aggregator = StreamAggregator()
        log = UsageLog(owner_id=request.owner_id, task_id=request.task_id, model=self.model)
        start = time.monotonic()
        try:
            upstream = self.llm.stream_text(
                prompt=build_user_prompt(request.profile_text, request.job_text),
                system=SYSTEM_PROMPT,
                model=self.model,
                max_tokens=self.max_tokens,
                usage=usage,
            )
            async with aclosing(upstream) as deltas:
                async for delta in deltas:
                    aggregator.feed(delta)
                    yield delta
            text = aggregator.finish()
            log.gaps_persisted = await self._persist_gaps(request, text, log)
        except (GeneratorExit, asyncio.CancelledError):
            logger.info("Generation for task %s cancelled by caller", request.task_id)
            log.success = False
            log.error_message = "cancelled"
            raise
        except UpstreamError as exc:
            log.success = False
            log.error_message = exc.message
            raise
        except Exception as exc:
            logger.error("Generation for task %s failed", request.task_id, exc_info=True)
            log.success = False
            log.error_message = str(exc)
            raise UpstreamError(f"Generation failed: {exc}") from exc
        finally:
            log.elapsed_seconds = time.monotonic() - start
            log.total_input_tokens = usage.input_tokens
            log.total_output_tokens = usage.output_tokens
            log.output_chars = len(aggregator)
            log.estimated_cost_usd = calculate_cost(
                [(self.model, usage.input_tokens, usage.output_tokens)]
            )
            self._record(log)

    async def _persist_gaps(self, request: GenerationRequest, text: str, log: UsageLog) -> bool:
        gaps = extract_section(text, GAPS_TAG)
        if not gaps:
            logger.info("No gap analysis in response for task %s", request.task_id)
            return False
        try:
            updated = await asyncio.to_thread(
                self.store.update_task, request.task_id, request.owner_id, gaps=gaps
            )
        except Exception as exc:
            # Deltas are already delivered, so a failed write only gets logged
            logger.exception("Failed to persist gap analysis for task %s", request.task_id)
            log.error_message = f"persistence failed: {exc}"
            return False
        if not updated:
            logger.warning("Task %s vanished before gap analysis was saved", request.task_id)
            log.error_message = "persistence failed: task not found"
            return False
        logger.info("Saved gap analysis for task %s (%d chars)", request.task_id, len(gaps))
        return True

    def _record(self, log: UsageLog) -> None:
        if self.usage_store is None:
            return
        try:
            self.usage_store.save_log(log)
        except Exception:
            logger.exception("Failed to save usage log")

    @asynccontextmanager
    async def _task_lock(self, task_id: str):
        entry = self._locks.get(task_id)
        if entry is None:
            entry = self._locks[task_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[task_id]
