"""Best-effort rewriting of image edit instructions."""

from __future__ import annotations

import logging

import anyio

from listify.ai.backoff import RetryExecutor, RetryPolicy
from listify.ai.pipeline.contracts import CompletionRequest, EnhancedPrompt
from listify.ai.prompts import build_enhancer_system_prompt
from listify.ai.providers.base import CompletionChannel

logger = logging.getLogger(__name__)

MIN_PROMPT_CHARS = 5


class PromptEnhancer:
  """Rewrite an instruction through a completion channel; any failure falls back to the original."""

  def __init__(self, channel: CompletionChannel | None, *, model: str, max_tokens: int = 300, timeout_seconds: float = 10.0, policy: RetryPolicy | None = None, executor: RetryExecutor | None = None) -> None:
    self.channel = channel
    self.model = model
    self.max_tokens = max_tokens
    self.timeout_seconds = timeout_seconds
    self.policy = policy or RetryPolicy(max_retries=1, initial_delay=0.5)
    self.executor = executor or RetryExecutor()

  async def enhance(self, instruction: str, *, category: str | None = None, platform: str | None = None, request_id: str | None = None, feature_key: str | None = None) -> EnhancedPrompt:
    original = instruction
    if self.channel is None:
      return EnhancedPrompt(original=original)

    if not instruction or not instruction.strip():
      logger.warning("[%s] Empty prompt received, skipping enhancement", request_id)
      return EnhancedPrompt(original=original)

    if len(instruction.strip()) < MIN_PROMPT_CHARS:
      logger.info("[%s] Prompt too short for enhancement", request_id)
      return EnhancedPrompt(original=original)

    request = CompletionRequest(system_prompt=build_enhancer_system_prompt(category, platform), user_prompt=instruction.strip(), model=self.model, max_tokens=self.max_tokens, feature_key=feature_key)
    channel = self.channel

    async def _call() -> str:
      return await channel.complete(request)

    try:
      with anyio.fail_after(self.timeout_seconds):
        enhanced = await self.executor.execute(_call, policy=self.policy, label="prompt enhancement")
    except Exception as exc:  # noqa: BLE001
      # Enhancement only improves quality; the literal instruction is always usable.
      logger.warning("[%s] Prompt enhancement failed, using original prompt: %s", request_id, exc)
      return EnhancedPrompt(original=original)

    enhanced = enhanced.strip().strip('"').strip()
    if not enhanced:
      logger.warning("[%s] Prompt enhancement returned empty text, using original prompt", request_id)
      return EnhancedPrompt(original=original)

    logger.info("[%s] Prompt enhanced (%d -> %d chars)", request_id, len(original), len(enhanced))
    return EnhancedPrompt(original=original, enhanced=enhanced, was_enhanced=True)
