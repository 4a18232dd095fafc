"""Model gateway - the boundary to the language model.

The orchestrator depends only on the ``ModelGateway`` protocol, so the
backend is injected at construction: the Agent SDK, the Claude Agent
container over HTTP, or the canned mock for local development.
"""

import logging
from typing import Protocol

import httpx
from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    TextBlock,
    query,
)

from mentra.config import Settings

logger = logging.getLogger(__name__)


class ModelGatewayError(RuntimeError):
    """Raised when the model call does not produce a reply."""


class ModelGateway(Protocol):
    """Anything that can turn instructions and a prompt into reply text."""

    async def complete(self, instructions: str, prompt: str) -> str:
        """Return the model's reply.

        Raises:
            ModelGatewayError: On any failure

        """
        ...


class ClaudeSdkGateway:
    """Calls Claude through the Agent SDK."""

    def __init__(self, model: str = "haiku"):
        self.model = model

    async def complete(self, instructions: str, prompt: str) -> str:
        options = ClaudeAgentOptions(
            model=self.model,
            system_prompt=instructions,
            max_turns=1,
        )

        collected_text: list[str] = []
        try:
            async for msg in query(prompt=prompt, options=options):
                if isinstance(msg, AssistantMessage):
                    for block in msg.content:
                        if isinstance(block, TextBlock):
                            collected_text.append(block.text)
                elif isinstance(msg, ResultMessage):
                    if msg.is_error:
                        raise ModelGatewayError(f"Claude error: {msg.result or 'Unknown error'}")
        except ModelGatewayError:
            raise
        except Exception as e:
            raise ModelGatewayError(f"Claude Agent SDK error: {e}") from e

        return "\n".join(collected_text)


class ClaudeAgentHttpGateway:
    """HTTP client for the Claude Agent container."""

    def __init__(
        self,
        base_url: str,
        model: str = "haiku",
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def complete(self, instructions: str, prompt: str) -> str:
        # The container takes a single prompt, so instructions lead it
        full_prompt = f"{instructions}\n\n{prompt}" if instructions else prompt

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/execute",
                    json={
                        "prompt": full_prompt,
                        "model": self.model,
                    },
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise ModelGatewayError(
                    f"HTTP {e.response.status_code}: {e.response.text}"
                ) from e
            except httpx.RequestError as e:
                raise ModelGatewayError(f"Request failed: {e}") from e

        if data.get("error"):
            raise ModelGatewayError(data["error"])
        return data.get("output") or ""


def create_model_gateway(settings: Settings) -> ModelGateway:
    """Build the gateway selected by ``settings.model_backend``."""
    if settings.model_backend == "mock":
        from mentra.services.model_mock import MockModelGateway

        logger.info("Using mock model gateway")
        return MockModelGateway()

    if settings.model_backend == "http":
        logger.info(f"Using Claude Agent container at {settings.claude_agent_url}")
        return ClaudeAgentHttpGateway(
            base_url=settings.claude_agent_url,
            model=settings.claude_model,
            timeout=settings.model_timeout_seconds,
        )

    return ClaudeSdkGateway(model=settings.claude_model)
