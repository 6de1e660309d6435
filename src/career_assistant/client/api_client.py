"""HTTP client for the streaming generate endpoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx

from career_assistant.exceptions import CareerAssistantError, UpstreamError

logger = logging.getLogger(__name__)


class ApiError(CareerAssistantError):
    """The server rejected the request before streaming began."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class GenerateClient:
    """Streams raw generation bytes from ``POST /api/generate``."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self.transport = transport

    async def stream_generation(
        self,
        task_id: str,
        existing_profile: str,
        job_description: str,
    ) -> AsyncIterator[bytes]:
        """Yield response body chunks as the server flushes them.

        Raises:
            ApiError: non-200 status (401/400/404...).
            UpstreamError: the connection broke off mid-stream.
        """
        payload = {
            "taskId": task_id,
            "existing_profile": existing_profile,
            "job_description": job_description,
        }
        headers = {"Authorization": f"Bearer {self.token}"}
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            try:
                async with client.stream(
                    "POST", "/api/generate", json=payload, headers=headers
                ) as response:
                    if response.status_code != 200:
                        await response.aread()
                        raise ApiError(response.status_code, _error_detail(response))
                    async for chunk in response.aiter_bytes():
                        yield chunk
            except httpx.HTTPError as exc:
                logger.error("Generate stream broke off", exc_info=True)
                raise UpstreamError(f"Generation stream interrupted: {exc}") from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error", response.text))
    except (ValueError, AttributeError):
        return response.text or f"HTTP {response.status_code}"
