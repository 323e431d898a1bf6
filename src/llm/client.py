"""Async model clients.

Two backends share one contract: ``complete(messages, temperature=..., max_tokens=...)``
returns a :data:`~src.llm.models.ModelResponse`.

- ``ProxyModelClient`` posts OpenAI-style chat requests to an HTTP proxy that
  holds the upstream API key.
- ``AnthropicModelClient`` calls Claude directly through the ``anthropic`` SDK.

Transport and HTTP failures raise :class:`ModelProxyError`; callers decide
what the user sees.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import anthropic
import httpx

from src.config import settings
from src.llm.models import ModelMalformed, ModelResponse, ModelSuccess

logger = logging.getLogger(__name__)


class ModelProxyError(Exception):
    """The model call failed: network error, upstream 4xx/5xx, or timeout."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelProxyTimeout(ModelProxyError):
    """The model call did not finish within the configured timeout."""


class ModelClient(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> ModelResponse: ...


def extract_reply_text(data: Any) -> ModelResponse:
    """Pull generated text out of a proxy response body.

    Looks at ``choices[0].message.content`` first, then a top-level ``result``
    string. Anything else is returned as :class:`ModelMalformed`.
    """
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return ModelSuccess(message["content"])
        if isinstance(data.get("result"), str):
            return ModelSuccess(data["result"])
    raw = data if isinstance(data, str) else json.dumps(data)
    return ModelMalformed(raw)


class ProxyModelClient:
    """Calls an OpenAI-compatible ``/chat/completions`` proxy."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        model: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._model = model
        self._transport = transport

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> ModelResponse:
        body: dict[str, Any] = {
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if self._model:
            body["model"] = self._model
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                resp = await client.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise ModelProxyError(f"Model proxy request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ModelProxyError(
                f"Model proxy returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError:
            return ModelMalformed(resp.text)

        result = extract_reply_text(data)
        if isinstance(result, ModelMalformed):
            logger.warning("Model proxy response had no reply text: %s", result.raw[:200])
        return result


class AnthropicModelClient:
    """Calls Claude directly. System-role messages are merged into ``system``."""

    def __init__(self, client: anthropic.AsyncAnthropic, model: str) -> None:
        self._client = client
        self._model = model

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> ModelResponse:
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        turns = [m for m in messages if m["role"] != "system"]

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": turns,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise ModelProxyError(str(exc), status_code=exc.status_code) from exc
        except anthropic.APIError as exc:
            raise ModelProxyError(str(exc)) from exc

        texts = [block.text for block in response.content if block.type == "text"]
        if not texts:
            return ModelMalformed(repr(response.content))
        return ModelSuccess("".join(texts))


_client: ModelClient | None = None


def get_model_client() -> ModelClient:
    """Lazily build the configured model client."""
    global _client  # noqa: PLW0603
    if _client is None:
        if settings.llm_backend == "anthropic":
            _client = AnthropicModelClient(
                anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key),
                settings.claude_model,
            )
        else:
            if not settings.llm_proxy_url:
                logger.warning("LLM_PROXY_URL is empty; model calls will fail")
            _client = ProxyModelClient(
                settings.llm_proxy_url,
                api_key=settings.llm_proxy_api_key,
                model=settings.llm_model,
            )
        logger.info("Model backend: %s", settings.llm_backend)
    return _client


async def complete_with_timeout(
    client: ModelClient,
    messages: list[dict[str, str]],
    *,
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> ModelResponse:
    """Run ``client.complete`` under *timeout* seconds; expiry raises :class:`ModelProxyTimeout`."""
    try:
        async with asyncio.timeout(timeout):
            return await client.complete(
                messages, temperature=temperature, max_tokens=max_tokens
            )
    except TimeoutError as exc:
        raise ModelProxyTimeout(f"Model call exceeded {timeout:g}s") from exc
