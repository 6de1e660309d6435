"""Tests for the generation orchestrator."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from career_assistant.exceptions import (
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
)
from career_assistant.models.generation import GenerationRequest
from career_assistant.pipeline.orchestrator import (
    SYSTEM_PROMPT,
    GenerationOrchestrator,
    build_user_prompt,
)

OWNER = "user-1"


def _chunks(text: str, size: int = 7) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


async def _collect(stream) -> list[str]:
    return [delta async for delta in stream]


class TestBuildUserPrompt:
    def test_embeds_texts_verbatim(self):
        prompt = build_user_prompt("my {profile}", "the <job>")
        assert "<EXISTING_PROFILE>\nmy {profile}\n</EXISTING_PROFILE>" in prompt
        assert "<JOB_DESCRIPTION>\nthe <job>\n</JOB_DESCRIPTION>" in prompt

    def test_names_both_output_tags(self):
        prompt = build_user_prompt("p", "j")
        assert "<TAILORED_RESUME>" in prompt and "</TAILORED_RESUME>" in prompt
        assert "<GAP_ANALYSIS>" in prompt and "</GAP_ANALYSIS>" in prompt


class TestPreconditions:
    async def test_wrong_caller_is_unauthorized(self, store, generation_request, streaming_llm):
        llm = streaming_llm(["x"])
        orchestrator = GenerationOrchestrator(llm, store)
        with pytest.raises(UnauthorizedError):
            await _collect(orchestrator.generate(generation_request, "someone-else"))
        llm.stream_text.assert_not_called()

    async def test_missing_caller_is_unauthorized(self, store, generation_request, streaming_llm):
        orchestrator = GenerationOrchestrator(streaming_llm(["x"]), store)
        with pytest.raises(UnauthorizedError):
            orchestrator.prepare(generation_request, None)

    @pytest.mark.parametrize("profile,job", [("", "job"), ("profile", "   "), ("\n", "\t")])
    async def test_blank_text_is_invalid(self, store, task, streaming_llm, profile, job):
        llm = streaming_llm(["x"])
        orchestrator = GenerationOrchestrator(llm, store)
        request = GenerationRequest(owner_id=OWNER, task_id=task.id, profile_text=profile, job_text=job)
        with pytest.raises(InvalidInputError):
            await _collect(orchestrator.generate(request, OWNER))
        llm.stream_text.assert_not_called()

    async def test_unknown_task_is_not_found(self, store, streaming_llm):
        llm = streaming_llm(["x"])
        orchestrator = GenerationOrchestrator(llm, store)
        request = GenerationRequest(owner_id=OWNER, task_id="nope", profile_text="p", job_text="j")
        with pytest.raises(NotFoundError):
            await _collect(orchestrator.generate(request, OWNER))
        llm.stream_text.assert_not_called()

    async def test_task_lookup_runs_off_the_event_loop(
        self, tracking_store, streaming_llm, tagged_document
    ):
        orchestrator = GenerationOrchestrator(streaming_llm([tagged_document]), tracking_store)
        request = GenerationRequest(
            owner_id=OWNER, task_id=tracking_store.task_id, profile_text="p", job_text="j"
        )
        await _collect(orchestrator.generate(request, OWNER))
        assert tracking_store.lookups_on_loop == [False]

    async def test_other_owners_task_is_not_found(self, store, streaming_llm):
        theirs = store.create_task("user-2", "Their task", "Elsewhere")
        orchestrator = GenerationOrchestrator(streaming_llm(["x"]), store)
        request = GenerationRequest(owner_id=OWNER, task_id=theirs.id, profile_text="p", job_text="j")
        with pytest.raises(NotFoundError):
            orchestrator.prepare(request, OWNER)


class TestGenerate:
    async def test_forwards_every_delta_in_order(
        self, store, generation_request, streaming_llm, tagged_document
    ):
        deltas = _chunks(tagged_document)
        orchestrator = GenerationOrchestrator(streaming_llm(deltas), store)
        received = await _collect(orchestrator.generate(generation_request, OWNER))
        assert received == deltas

    async def test_sends_system_and_user_prompt(
        self, store, generation_request, streaming_llm, tagged_document
    ):
        llm = streaming_llm([tagged_document])
        orchestrator = GenerationOrchestrator(llm, store, model="test-model", max_tokens=1234)
        await _collect(orchestrator.generate(generation_request, OWNER))

        kwargs = llm.stream_text.call_args.kwargs
        assert kwargs["system"] == SYSTEM_PROMPT
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 1234
        assert generation_request.profile_text in kwargs["prompt"]
        assert generation_request.job_text in kwargs["prompt"]

    async def test_persists_gaps_on_completion(
        self, store, task, generation_request, streaming_llm, tagged_document
    ):
        orchestrator = GenerationOrchestrator(streaming_llm(_chunks(tagged_document)), store)
        await _collect(orchestrator.generate(generation_request, OWNER))
        saved = store.get_task(task.id, OWNER)
        assert saved.gaps == "- Missing AWS certification\n* No Kubernetes experience"

    async def test_persists_exactly_once(
        self, task, generation_request, streaming_llm, tagged_document
    ):
        store = MagicMock()
        store.get_task.return_value = task
        store.update_task.return_value = True
        orchestrator = GenerationOrchestrator(streaming_llm(_chunks(tagged_document, 3)), store)
        await _collect(orchestrator.generate(generation_request, OWNER))
        store.update_task.assert_called_once_with(
            task.id, OWNER, gaps="- Missing AWS certification\n* No Kubernetes experience"
        )

    async def test_no_persist_before_stream_ends(
        self, task, generation_request, streaming_llm, tagged_document
    ):
        store = MagicMock()
        store.get_task.return_value = task
        store.update_task.return_value = True
        orchestrator = GenerationOrchestrator(streaming_llm(_chunks(tagged_document)), store)
        async for _ in orchestrator.generate(generation_request, OWNER):
            store.update_task.assert_not_called()
        store.update_task.assert_called_once()

    async def test_no_persist_without_gap_region(self, store, task, generation_request, streaming_llm):
        orchestrator = GenerationOrchestrator(
            streaming_llm(["<TAILORED_RESUME>r</TAILORED_RESUME>"]), store
        )
        await _collect(orchestrator.generate(generation_request, OWNER))
        assert store.get_task(task.id, OWNER).gaps is None

    async def test_no_persist_for_empty_gap_region(self, store, task, generation_request, streaming_llm):
        orchestrator = GenerationOrchestrator(
            streaming_llm(["<GAP_ANALYSIS>\n  \n</GAP_ANALYSIS>"]), store
        )
        await _collect(orchestrator.generate(generation_request, OWNER))
        assert store.get_task(task.id, OWNER).gaps is None

    async def test_upstream_failure_propagates_without_persisting(
        self, store, task, generation_request, streaming_llm, tagged_document
    ):
        store.update_task(task.id, OWNER, gaps="previous")
        llm = streaming_llm(
            _chunks(tagged_document), error=UpstreamError("connection reset")
        )
        orchestrator = GenerationOrchestrator(llm, store)

        received = []
        with pytest.raises(UpstreamError):
            async for delta in orchestrator.generate(generation_request, OWNER):
                received.append(delta)

        # Everything forwarded before the failure stays forwarded
        assert "".join(received) == tagged_document
        assert store.get_task(task.id, OWNER).gaps == "previous"

    async def test_unexpected_error_becomes_upstream_error(
        self, store, task, generation_request, streaming_llm
    ):
        orchestrator = GenerationOrchestrator(
            streaming_llm(["partial"], error=ConnectionResetError("peer gone")), store
        )
        with pytest.raises(UpstreamError, match="peer gone"):
            await _collect(orchestrator.generate(generation_request, OWNER))
        assert store.get_task(task.id, OWNER).gaps is None

    async def test_caller_abort_skips_persistence(
        self, store, task, generation_request, streaming_llm, tagged_document
    ):
        orchestrator = GenerationOrchestrator(streaming_llm(_chunks(tagged_document)), store)
        stream = orchestrator.generate(generation_request, OWNER)
        await stream.__anext__()
        await stream.aclose()
        assert store.get_task(task.id, OWNER).gaps is None

    async def test_persistence_failure_does_not_fail_stream(
        self, task, generation_request, streaming_llm, tagged_document
    ):
        store = MagicMock()
        store.get_task.return_value = task
        store.update_task.side_effect = RuntimeError("disk full")
        deltas = _chunks(tagged_document)
        orchestrator = GenerationOrchestrator(streaming_llm(deltas), store)
        received = await _collect(orchestrator.generate(generation_request, OWNER))
        assert received == deltas

    async def test_same_task_generations_are_serialized(
        self, store, task, generation_request, streaming_llm
    ):
        first = "<GAP_ANALYSIS>first</GAP_ANALYSIS>"
        second = "<GAP_ANALYSIS>second</GAP_ANALYSIS>"

        # Each stream picks up orchestrator.llm when it starts talking to the model
        orchestrator = GenerationOrchestrator(streaming_llm(_chunks(first, 4)), store)
        stream_a = orchestrator.generate(generation_request, OWNER)
        stream_b = orchestrator.generate(generation_request, OWNER)
        a_first = await stream_a.__anext__()
        orchestrator.llm = streaming_llm(_chunks(second, 4))
        b_task = asyncio.ensure_future(_collect(stream_b))
        await asyncio.sleep(0.01)
        assert not b_task.done()  # blocked behind the first generation's lock

        rest_a = await _collect(stream_a)
        assert a_first + "".join(rest_a) == first
        assert store.get_task(task.id, OWNER).gaps == "first"

        assert "".join(await b_task) == second
        assert store.get_task(task.id, OWNER).gaps == "second"
        assert orchestrator._locks == {}


class TestUsageLogging:
    async def test_success_is_logged(
        self, store, task, usage_store, generation_request, streaming_llm, tagged_document
    ):
        orchestrator = GenerationOrchestrator(
            streaming_llm([tagged_document], input_tokens=1000, output_tokens=400),
            store,
            model="claude-sonnet-4-5-20250929",
            usage_store=usage_store,
        )
        await _collect(orchestrator.generate(generation_request, OWNER))

        [log] = usage_store.get_logs()
        assert log.success is True
        assert log.gaps_persisted is True
        assert log.task_id == task.id
        assert log.total_input_tokens == 1000
        assert log.total_output_tokens == 400
        assert log.output_chars == len(tagged_document)
        assert log.estimated_cost_usd > 0

    async def test_failure_is_logged(
        self, store, usage_store, generation_request, streaming_llm
    ):
        orchestrator = GenerationOrchestrator(
            streaming_llm(["x"], error=UpstreamError("overloaded")),
            store,
            usage_store=usage_store,
        )
        with pytest.raises(UpstreamError):
            await _collect(orchestrator.generate(generation_request, OWNER))

        [log] = usage_store.get_logs()
        assert log.success is False
        assert log.gaps_persisted is False
        assert log.error_message == "overloaded"

    async def test_persistence_failure_is_logged(
        self, task, usage_store, generation_request, streaming_llm, tagged_document
    ):
        store = MagicMock()
        store.get_task.return_value = task
        store.update_task.side_effect = RuntimeError("disk full")
        orchestrator = GenerationOrchestrator(
            streaming_llm([tagged_document]), store, usage_store=usage_store
        )
        await _collect(orchestrator.generate(generation_request, OWNER))

        [log] = usage_store.get_logs()
        assert log.success is True
        assert log.gaps_persisted is False
        assert "disk full" in log.error_message

    async def test_usage_store_failure_is_swallowed(
        self, store, generation_request, streaming_llm, tagged_document
    ):
        usage_store = MagicMock()
        usage_store.save_log.side_effect = RuntimeError("usage db locked")
        orchestrator = GenerationOrchestrator(
            streaming_llm([tagged_document]), store, usage_store=usage_store
        )
        received = await _collect(orchestrator.generate(generation_request, OWNER))
        assert "".join(received) == tagged_document
