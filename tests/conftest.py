"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from career_assistant.clients.llm_client import LLMClient
from career_assistant.models.generation import GenerationRequest
from career_assistant.models.task import Task
from career_assistant.storage.task_store import TaskStore
from career_assistant.usage.usage_store import UsageStore

OWNER = "user-1"
OTHER_OWNER = "user-2"


@pytest.fixture
def sample_profile_text() -> str:
    return """Jane Doe
jane@example.com

EXPERIENCE
- Acme Corp (2021 - present), Backend Engineer
  - Built Django REST APIs serving 1M requests/day
  - Cut MySQL query latency by 40%

SKILLS
Python, Django, MySQL, Docker
"""


@pytest.fixture
def sample_job_text() -> str:
    return """Senior Backend Engineer

Requirements:
- 5+ years of Python
- AWS (certification preferred)
- Kubernetes in production
"""


@pytest.fixture
def tagged_document() -> str:
    return (
        "Here is your tailored resume.\n\n"
        "<TAILORED_RESUME>\n"
        "## Experience\n"
        "- Built **Django** REST APIs\n"
        "- Cut query latency by 40%\n"
        "</TAILORED_RESUME>\n\n"
        "<GAP_ANALYSIS>\n"
        "- Missing AWS certification\n"
        "* No Kubernetes experience\n"
        "</GAP_ANALYSIS>\n"
    )


@pytest.fixture
def store(tmp_path) -> TaskStore:
    return TaskStore(db_path=tmp_path / "tasks.db")


@pytest.fixture
def usage_store(tmp_path) -> UsageStore:
    return UsageStore(db_path=tmp_path / "usage.db")


@pytest.fixture
def task(store, sample_profile_text, sample_job_text) -> Task:
    created = store.create_task(OWNER, "Backend role", "Acme")
    store.update_task(
        created.id,
        OWNER,
        existing_profile=sample_profile_text,
        job_description=sample_job_text,
    )
    return store.get_task(created.id, OWNER)


@pytest.fixture
def generation_request(task, sample_profile_text, sample_job_text) -> GenerationRequest:
    return GenerationRequest(
        owner_id=OWNER,
        task_id=task.id,
        profile_text=sample_profile_text,
        job_text=sample_job_text,
    )


def make_streaming_llm(
    deltas: list[str],
    *,
    error: Exception | None = None,
    input_tokens: int = 100,
    output_tokens: int = 50,
) -> LLMClient:
    """Mock LLM client whose stream_text yields ``deltas`` then optionally raises."""
    client = MagicMock(spec=LLMClient)

    async def stream_text(prompt, system="", model="", max_tokens=8192, usage=None):
        if usage is not None:
            usage.input_tokens = input_tokens
        for delta in deltas:
            yield delta
        if error is not None:
            raise error
        if usage is not None:
            usage.output_tokens = output_tokens

    client.stream_text = MagicMock(side_effect=stream_text)
    return client


@pytest.fixture
def streaming_llm():
    """Factory fixture for :func:`make_streaming_llm`."""
    return make_streaming_llm


class LoopTrackingStore(TaskStore):
    """TaskStore that records whether each get_task call ran on an event loop thread."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.lookups_on_loop: list[bool] = []

    def get_task(self, task_id, owner_id):
        try:
            asyncio.get_running_loop()
            self.lookups_on_loop.append(True)
        except RuntimeError:
            self.lookups_on_loop.append(False)
        return super().get_task(task_id, owner_id)


@pytest.fixture
def tracking_store(tmp_path, sample_profile_text, sample_job_text) -> LoopTrackingStore:
    """A tracking store holding one task with profile and job text."""
    tracked = LoopTrackingStore(tmp_path / "tracked.db")
    created = tracked.create_task(OWNER, "Backend role", "Acme")
    tracked.update_task(
        created.id,
        OWNER,
        existing_profile=sample_profile_text,
        job_description=sample_job_text,
    )
    tracked.lookups_on_loop.clear()
    tracked.task_id = created.id
    return tracked
