"""Text completion with channel fallback and bounded retries."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from listify.ai.backoff import RetryError, RetryExecutor, RetryPolicy
from listify.ai.errors import CompletionError
from listify.ai.pipeline.contracts import CompletionRequest
from listify.ai.providers.base import CompletionChannel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelRoute:
  """A channel paired with the retry policy applied to it."""

  channel: CompletionChannel
  policy: RetryPolicy


class TextCompletionClient:
  """Try each channel in order (backend proxy first, direct provider next) until one returns text."""

  def __init__(self, routes: Sequence[ChannelRoute], *, executor: RetryExecutor | None = None, default_model: str = "deepseek-chat", default_max_tokens: int = 4096) -> None:
    if not routes:
      raise ValueError("At least one completion channel is required.")
    self.routes = list(routes)
    self.executor = executor or RetryExecutor()
    self.default_model = default_model
    self.default_max_tokens = default_max_tokens

  async def complete(self, system_prompt: str, user_prompt: str, *, model: str | None = None, max_tokens: int | None = None, feature_key: str | None = None) -> str:
    """Return completion text, raising CompletionError once every channel is exhausted."""
    request = CompletionRequest(system_prompt=system_prompt, user_prompt=user_prompt, model=model or self.default_model, max_tokens=max_tokens or self.default_max_tokens, feature_key=feature_key)

    failures: list[dict[str, object]] = []
    last_error: RetryError | None = None
    for route in self.routes:
      channel = route.channel

      async def _call(channel: CompletionChannel = channel) -> str:
        return await channel.complete(request)

      try:
        return await self.executor.execute(_call, policy=route.policy, label=f"completion via {channel.name}")
      except RetryError as exc:
        last_error = exc
        failures.append({"channel": channel.name, "endpoint": channel.endpoint, "attempts": exc.attempt_count, "kind": exc.kind.value, "error": str(exc)})
        logger.warning("Completion channel %s failed after %d attempts (%s); trying next channel", channel.name, exc.attempt_count, exc.kind.value)

    assert last_error is not None
    last = failures[-1]
    metadata = {"endpoint": last["endpoint"], "attempts": sum(int(item["attempts"]) for item in failures), "last_error": str(last_error), "channels": failures}
    raise CompletionError(last_error.kind, f"All completion channels failed: {last_error}", metadata=metadata)

  async def aclose(self) -> None:
    for route in self.routes:
      await route.channel.aclose()
