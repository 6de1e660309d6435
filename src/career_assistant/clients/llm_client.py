"""Claude API wrapper that streams text deltas with retry on stream setup."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import anthropic
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from career_assistant.exceptions import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Failures worth retrying before any delta has been forwarded
_RETRYABLE = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


@dataclass
class StreamUsage:
    """Token counts reported by one streamed call."""

    input_tokens: int = 0
    output_tokens: int = 0


class LLMClient:
    """Async Claude API client that yields response text as it arrives."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        max_attempts: int = 3,
    ):
        # tenacity is the only retry layer
        kwargs: dict = {"max_retries": 0}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = anthropic.AsyncAnthropic(**kwargs)
        self.max_attempts = max_attempts
        self._token_log: list[tuple[str, int, int]] = []  # (model, input_tokens, output_tokens)

    async def _open_stream(self, **kwargs):
        """Open the event stream, retrying transient failures.

        Only the request that opens the stream is retried. Once events flow,
        a failure is final because deltas have already reached the caller.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(min=1, max=10),
            retry=retry_if_exception_type(_RETRYABLE),
            reraise=True,
        ):
            with attempt:
                return await self.client.messages.create(stream=True, **kwargs)

    async def stream_text(
        self,
        prompt: str,
        system: str = "",
        model: str = DEFAULT_MODEL,
        max_tokens: int = 8192,
        usage: StreamUsage | None = None,
    ) -> AsyncIterator[str]:
        """Send a prompt to Claude and yield each text delta in arrival order.

        Args:
            usage: Filled in with token counts as the stream reports them.

        Raises:
            UpstreamError: the API call failed or the stream broke off.
        """
        if usage is None:
            usage = StreamUsage()
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        logger.debug("LLM stream: model=%s", model)
        stream = None
        try:
            stream = await self._open_stream(**kwargs)
            async for event in stream:
                if event.type == "message_start":
                    usage.input_tokens = event.message.usage.input_tokens
                elif event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield event.delta.text
                elif event.type == "message_delta":
                    usage.output_tokens = event.usage.output_tokens
        except anthropic.APIError as exc:
            logger.error("LLM stream failed", exc_info=True)
            raise UpstreamError(f"Generation service error: {exc}") from exc
        finally:
            # Also runs when the caller closes us early; releases the HTTP response
            if stream is not None:
                await stream.close()
            if usage.input_tokens or usage.output_tokens:
                self._token_log.append((model, usage.input_tokens, usage.output_tokens))

        logger.debug(
            "LLM stream done: %d input, %d output tokens", usage.input_tokens, usage.output_tokens
        )

    def get_token_summary(self) -> dict:
        """Return accumulated token usage and reset the log."""
        summary = {
            "input": sum(t[1] for t in self._token_log),
            "output": sum(t[2] for t in self._token_log),
            "calls": list(self._token_log),
        }
        self._token_log.clear()
        return summary
