"""DeepSeek text completion channels: the OpenAI-compatible API and an authenticated backend proxy."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from openai import AsyncOpenAI

from listify.ai.errors import ErrorKind, ProviderError
from listify.ai.pipeline.contracts import CompletionRequest
from listify.ai.providers.base import ChatCompletionResponse, CompletionChannel
from listify.ai.rate_limit import TokenBucket

logger = logging.getLogger(__name__)


class DeepSeekChannel(CompletionChannel):
  """Direct-to-provider channel using the OpenAI SDK against the DeepSeek base URL."""

  name = "deepseek-direct"

  def __init__(self, *, api_key: str | None, base_url: str, timeout_seconds: float, rate_limiter: TokenBucket | None = None, client: Any | None = None) -> None:
    if client is None:
      if not api_key:
        raise ValueError("DEEPSEEK_API_KEY environment variable is required")
      # SDK retries are disabled; the retry executor owns retry policy.
      client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds, max_retries=0)
    self._client = client
    self._rate_limiter = rate_limiter
    self.endpoint = f"{base_url.rstrip('/')}/chat/completions"

  async def complete(self, request: CompletionRequest) -> str:
    if self._rate_limiter is not None:
      await self._rate_limiter.acquire()

    response = await self._client.chat.completions.create(model=request.model, messages=request.messages(), max_tokens=request.max_tokens)
    payload = response.model_dump() if hasattr(response, "model_dump") else response
    content = ChatCompletionResponse.decode(payload).content()
    logger.debug("DeepSeek response (%d chars)", len(content))
    return content

  async def aclose(self) -> None:
    close = getattr(self._client, "close", None)
    if close is not None:
      await close()


class BackendProxyChannel(CompletionChannel):
  """Primary channel: a backend endpoint that holds the provider key and accepts a bearer token."""

  name = "backend-proxy"

  def __init__(self, *, url: str, token: str | None, timeout_seconds: float, client: httpx.AsyncClient | None = None) -> None:
    self.endpoint = url
    self._token = token
    self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
    self._owns_client = client is None

  async def complete(self, request: CompletionRequest) -> str:
    headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
    body: dict[str, Any] = {"model": request.model, "messages": request.messages(), "max_tokens": request.max_tokens}
    if request.feature_key:
      body["featureKey"] = request.feature_key

    response = await self._client.post(self.endpoint, json=body, headers=headers)
    response.raise_for_status()
    try:
      payload = response.json()
    except ValueError as exc:
      raise ProviderError(ErrorKind.INVALID_RESPONSE, "Proxy response was not JSON") from exc
    return ChatCompletionResponse.decode(payload).content()

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()
