"""FastAPI application: streaming generate endpoint plus owner-scoped task CRUD."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from career_assistant.api.auth import TokenAuthenticator
from career_assistant.clients.llm_client import LLMClient
from career_assistant.config import AppConfig, load_config
from career_assistant.exceptions import (
    CareerAssistantError,
    InvalidInputError,
    NotFoundError,
    UpstreamError,
)
from career_assistant.models.generation import GenerationRequest
from career_assistant.models.task import Task
from career_assistant.pipeline.orchestrator import GenerationOrchestrator
from career_assistant.storage.task_store import TaskStore
from career_assistant.usage.usage_store import UsageStore

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Content-Type-Options": "nosniff",
}


class GenerateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId", min_length=1)
    existing_profile: str | None = None
    job_description: str | None = None


class CreateTaskBody(BaseModel):
    name: str = ""
    company: str = ""
    notes: str | None = None


class UpdateTaskBody(BaseModel):
    existing_profile: str | None = None
    job_description: str | None = None
    notes: str | None = None


def current_owner(request: Request) -> str:
    authenticator: TokenAuthenticator = request.app.state.authenticator
    return authenticator.authenticate(request.headers.get("Authorization"))


def create_app(
    config: AppConfig | None = None,
    *,
    store: TaskStore | None = None,
    llm: LLMClient | None = None,
    authenticator: TokenAuthenticator | None = None,
    usage_store: UsageStore | None = None,
) -> FastAPI:
    """Build the app. Collaborators default to ones built from ``config``."""
    config = config or load_config()
    store = store or TaskStore(config.storage.resolved_db_path)
    if llm is None:
        llm = LLMClient(timeout=config.llm.timeout, max_attempts=config.llm.max_attempts)
    authenticator = authenticator or TokenAuthenticator(config.auth.tokens)

    app = FastAPI(title="career-assistant")
    app.state.store = store
    app.state.authenticator = authenticator
    app.state.orchestrator = GenerationOrchestrator(
        llm,
        store,
        model=config.llm.model,
        max_tokens=config.llm.max_tokens,
        usage_store=usage_store,
    )

    @app.exception_handler(CareerAssistantError)
    async def handle_error(request: Request, exc: CareerAssistantError) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/generate")
    async def generate(request: Request, owner_id: str = Depends(current_owner)):
        try:
            body = GenerateBody.model_validate(await request.json())
        except (ValueError, ValidationError):
            raise InvalidInputError("Invalid request body.")

        gen_request = GenerationRequest(
            owner_id=owner_id,
            task_id=body.task_id,
            profile_text=body.existing_profile or "",
            job_text=body.job_description or "",
        )
        orchestrator: GenerationOrchestrator = request.app.state.orchestrator
        await asyncio.to_thread(orchestrator.prepare, gen_request, owner_id)

        logger.info("Starting generation for task %s", gen_request.task_id)
        return StreamingResponse(
            _encode(orchestrator.generate(gen_request, owner_id)),
            media_type="text/plain; charset=utf-8",
            headers=STREAM_HEADERS,
        )

    @app.get("/api/tasks")
    def list_tasks(owner_id: str = Depends(current_owner)) -> list[Task]:
        return store.list_tasks(owner_id)

    @app.post("/api/tasks", status_code=201)
    def create_task(body: CreateTaskBody, owner_id: str = Depends(current_owner)) -> Task:
        return store.create_task(owner_id, body.name, body.company, body.notes)

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: str, owner_id: str = Depends(current_owner)) -> Task:
        task = store.get_task(task_id, owner_id)
        if task is None:
            raise NotFoundError("Task not found.")
        return task

    @app.patch("/api/tasks/{task_id}")
    def update_task(
        task_id: str,
        body: UpdateTaskBody,
        owner_id: str = Depends(current_owner),
    ) -> Task:
        fields = body.model_dump(exclude_unset=True)
        if not store.update_task(task_id, owner_id, **fields):
            raise NotFoundError("Task not found.")
        return store.get_task(task_id, owner_id)

    return app


async def _encode(deltas: AsyncIterator[str]) -> AsyncIterator[bytes]:
    try:
        async with aclosing(deltas):
            async for delta in deltas:
                yield delta.encode("utf-8")
    except UpstreamError as exc:
        # Headers are already sent; aborting the body is the only error signal left
        logger.warning("Aborting response stream: %s", exc.message)
        raise
