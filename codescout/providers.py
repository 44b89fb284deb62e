"""Remote text-completion clients used to refine keyword extraction.

Two wire formats are supported: OpenAI-compatible chat completions (LM Studio
and friends) and Ollama's native chat API. Both are treated as unreliable:
callers catch every failure and fall back to heuristics.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from codescout.config import Config, ProviderConfig
from codescout.runtime.cancellation import CancellationToken, TaskCanceledError

logger = logging.getLogger(__name__)

# Timeouts
DEFAULT_TIMEOUT = 30.0  # seconds
HEALTH_TIMEOUT = 5.0

Message = dict[str, str]


class SubagentUnavailableError(Exception):
    """Raised when the completion service is unreachable or misbehaves."""

    pass


class CompletionProvider:
    """Base class: ``complete`` handles cancellation, subclasses speak the wire format."""

    name = "base"

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError(f"{type(self).__name__} requires base_url")
        if not model:
            raise ValueError(f"{type(self).__name__} requires model")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.2,
        max_tokens: int = 512,
        token: CancellationToken | None = None,
    ) -> str:
        """Return the assistant text for ``messages``.

        A tripped token cancels the in-flight request.

        Raises:
            TaskCanceledError: If the token tripped before or during the call
            SubagentUnavailableError: On connection, HTTP or payload errors
        """
        if token is not None:
            token.raise_if_cancelled()

        request = asyncio.ensure_future(self._request(messages, temperature, max_tokens))
        unsubscribe = token.add_callback(request.cancel) if token is not None else None
        try:
            return await request
        except asyncio.CancelledError:
            if token is not None and token.cancelled and request.cancelled():
                raise TaskCanceledError("Completion request canceled") from None
            raise
        finally:
            if unsubscribe is not None:
                unsubscribe()

    async def _request(self, messages: list[Message], temperature: float, max_tokens: int) -> str:
        raise NotImplementedError

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout, transport=self._transport)

    async def _post_json(self, url: str, payload: dict[str, Any], headers: dict[str, str] | None = None) -> Any:
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()

        except httpx.ConnectError as e:
            logger.error(f"Failed to connect to {self.name} at {self.base_url}: {e}")
            raise SubagentUnavailableError(f"{self.name} service unavailable") from e

        except httpx.TimeoutException as e:
            logger.warning(f"{self.name} request timed out after {self.timeout}s")
            raise SubagentUnavailableError(f"{self.name} request timed out") from e

        except httpx.HTTPStatusError as e:
            logger.error(f"{self.name} HTTP error: {e}")
            raise SubagentUnavailableError(f"{self.name} returned error: {e.response.status_code}") from e

        except httpx.HTTPError as e:
            logger.error(f"{self.name} request failed: {e}")
            raise SubagentUnavailableError(f"{self.name} request failed") from e

        except ValueError as e:
            raise SubagentUnavailableError(f"{self.name} returned invalid JSON") from e

    async def check_health(self) -> bool:
        """Check if the completion service answers."""
        raise NotImplementedError


class OpenAICompatibleProvider(CompletionProvider):
    """Chat completions against an OpenAI-compatible server such as LM Studio."""

    name = "lmstudio-openai"

    async def _request(self, messages: list[Message], temperature: float, max_tokens: int) -> str:
        headers = {"authorization": f"Bearer {self.api_key}"} if self.api_key else None
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            {
                "model": self.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            headers=headers,
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str):
            raise SubagentUnavailableError("Provider response missing message content")
        return content

    async def check_health(self) -> bool:
        try:
            async with self._client(HEALTH_TIMEOUT) as client:
                response = await client.get(f"{self.base_url}/models")
                return response.status_code == 200
        except httpx.HTTPError:
            return False


class OllamaProvider(CompletionProvider):
    """Chat completions against a local Ollama daemon."""

    name = "ollama"

    async def _request(self, messages: list[Message], temperature: float, max_tokens: int) -> str:
        data = await self._post_json(
            f"{self.base_url}/api/chat",
            {
                "model": self.model,
                "messages": messages,
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            },
        )
        content = data.get("message", {}).get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise SubagentUnavailableError("Provider response missing message content")
        return content

    async def check_health(self) -> bool:
        try:
            async with self._client(HEALTH_TIMEOUT) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False


PROVIDERS: dict[str, type[CompletionProvider]] = {
    OpenAICompatibleProvider.name: OpenAICompatibleProvider,
    OllamaProvider.name: OllamaProvider,
}


def create_provider(config: Config | ProviderConfig) -> CompletionProvider | None:
    """Build the configured provider, or None when keyword refinement is disabled."""
    settings = config.provider if isinstance(config, Config) else config
    if settings.kind is None:
        return None
    provider_cls = PROVIDERS[settings.kind]
    logger.info(f"Using {settings.kind} provider at {settings.base_url} (model={settings.model})")
    return provider_cls(
        base_url=settings.base_url or "",
        model=settings.model or "",
        api_key=settings.api_key,
        timeout=settings.timeout_seconds,
    )
