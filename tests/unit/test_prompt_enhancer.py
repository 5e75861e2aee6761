from __future__ import annotations

import anyio
import pytest

from listify.ai.backoff import RetryPolicy
from listify.ai.enhancer import PromptEnhancer
from listify.ai.errors import ErrorKind, ProviderError
from listify.ai.pipeline.contracts import CompletionRequest
from listify.ai.providers.base import CompletionChannel
from tests.fakes import ScriptedChannel


class _SlowChannel(CompletionChannel):
  name = "slow"
  endpoint = "https://llm.test/slow"

  async def complete(self, request: CompletionRequest) -> str:
    await anyio.sleep(5)
    return "never"


@pytest.mark.anyio
async def test_enhanced_prompt_is_used(executor) -> None:
  channel = ScriptedChannel('"Remove the background and add soft studio lighting"')
  enhancer = PromptEnhancer(channel, model="deepseek-chat", executor=executor)

  result = await enhancer.enhance("remove background", category="jewelry", platform="etsy")

  assert result.was_enhanced
  assert result.enhanced == "Remove the background and add soft studio lighting"
  assert result.text == result.enhanced
  assert result.original == "remove background"
  assert "jewelry" in channel.calls[0].system_prompt.lower()


@pytest.mark.anyio
async def test_short_or_empty_prompts_skip_the_channel(executor) -> None:
  channel = ScriptedChannel("unused")
  enhancer = PromptEnhancer(channel, model="deepseek-chat", executor=executor)

  assert not (await enhancer.enhance("crop")).was_enhanced
  assert not (await enhancer.enhance("   ")).was_enhanced
  assert channel.calls == []


@pytest.mark.anyio
async def test_channel_failure_falls_back_to_original(executor) -> None:
  channel = ScriptedChannel(ProviderError(ErrorKind.SERVER_ERROR, "503"))
  enhancer = PromptEnhancer(channel, model="deepseek-chat", executor=executor, policy=RetryPolicy(max_retries=1, initial_delay=0.01))

  result = await enhancer.enhance("make the product pop")

  assert result.was_enhanced is False
  assert result.text == "make the product pop"
  assert len(channel.calls) == 2


@pytest.mark.anyio
async def test_blank_enhancement_falls_back_to_original(executor) -> None:
  enhancer = PromptEnhancer(ScriptedChannel('  ""  '), model="deepseek-chat", executor=executor)
  result = await enhancer.enhance("make the product pop")
  assert result.text == "make the product pop"


@pytest.mark.anyio
async def test_timeout_falls_back_to_original() -> None:
  enhancer = PromptEnhancer(_SlowChannel(), model="deepseek-chat", timeout_seconds=0.05)
  result = await enhancer.enhance("make the product pop")
  assert result.was_enhanced is False


@pytest.mark.anyio
async def test_disabled_enhancer_returns_original() -> None:
  result = await PromptEnhancer(None, model="deepseek-chat").enhance("make the product pop")
  assert result.text == "make the product pop"
