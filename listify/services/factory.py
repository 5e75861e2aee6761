"""Build provider clients from settings."""

from __future__ import annotations

import logging

from listify.ai.backoff import RetryExecutor, RetryPolicy
from listify.ai.enhancer import PromptEnhancer
from listify.ai.image_edit import ImageEditClient
from listify.ai.image_processing import ImagePostProcessor
from listify.ai.pipeline.contracts import OutputOptions
from listify.ai.providers.base import CompletionChannel, ImageTransport
from listify.ai.providers.deepseek import BackendProxyChannel, DeepSeekChannel
from listify.ai.providers.gemini import GeminiHttpTransport, GeminiSdkTransport
from listify.ai.providers.mock import EchoImageTransport, MockCompletionChannel
from listify.ai.rate_limit import TokenBucket
from listify.ai.text_completion import ChannelRoute, TextCompletionClient
from listify.config import Settings
from listify.storage.content_cache import ContentCache, EvictionPolicy, build_content_cache

logger = logging.getLogger(__name__)


def build_cache(settings: Settings) -> ContentCache:
  policy = EvictionPolicy(mode=settings.cache_eviction, ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries)
  return build_content_cache(backend=settings.cache_backend, directory=settings.cache_dir, policy=policy)


def build_direct_channel(settings: Settings, rate_limiter: TokenBucket | None = None) -> CompletionChannel:
  """The direct DeepSeek channel, or the canned channel in mock mode."""
  if settings.mock_mode:
    return MockCompletionChannel()
  limiter = rate_limiter or TokenBucket(settings.deepseek_rate_limit)
  return DeepSeekChannel(api_key=settings.deepseek_api_key, base_url=settings.deepseek_api_url, timeout_seconds=settings.deepseek_timeout_ms / 1000, rate_limiter=limiter)


def build_text_completion_client(settings: Settings, *, direct_channel: CompletionChannel | None = None, executor: RetryExecutor | None = None) -> TextCompletionClient:
  """Proxy channel first (when configured), then the direct provider channel.

  The direct route is skipped when no provider key is available but a proxy is; with neither
  a ValueError is raised.
  """
  policy = RetryPolicy.from_ms(settings.deepseek_max_retries, settings.deepseek_retry_delay_ms)
  routes: list[ChannelRoute] = []
  if settings.completion_proxy_url and not settings.mock_mode:
    proxy = BackendProxyChannel(url=settings.completion_proxy_url, token=settings.completion_proxy_token, timeout_seconds=settings.deepseek_timeout_ms / 1000)
    routes.append(ChannelRoute(proxy, RetryPolicy.from_ms(settings.deepseek_max_retries, settings.deepseek_retry_delay_ms, escalate_network=True)))

  if direct_channel is None and (settings.mock_mode or settings.deepseek_api_key or not routes):
    direct_channel = build_direct_channel(settings)
  if direct_channel is not None:
    routes.append(ChannelRoute(direct_channel, policy))
  return TextCompletionClient(routes, executor=executor, default_model=settings.deepseek_model, default_max_tokens=settings.deepseek_max_tokens)


def build_image_transport(settings: Settings) -> ImageTransport:
  if settings.mock_mode:
    return EchoImageTransport()
  if settings.image_transport == "http":
    return GeminiHttpTransport(base_url=settings.gemini_base_url, model=settings.gemini_model, api_key=settings.gemini_api_key, timeout_seconds=settings.image_timeout_seconds)
  return GeminiSdkTransport(api_key=settings.gemini_api_key, model=settings.gemini_model, timeout_seconds=settings.image_timeout_seconds)


def build_prompt_enhancer(settings: Settings, channel: CompletionChannel | None) -> PromptEnhancer:
  return PromptEnhancer(channel if settings.prompt_enhancement_enabled else None, model=settings.deepseek_model, timeout_seconds=settings.prompt_enhancement_timeout_seconds)


def build_image_edit_client(settings: Settings, *, cache: ContentCache, enhancer_channel: CompletionChannel | None, transport: ImageTransport | None = None) -> ImageEditClient:
  output_defaults = OutputOptions(width=settings.output_width, height=settings.output_height, format=settings.output_format, quality=settings.output_quality)
  return ImageEditClient(
    transport=transport or build_image_transport(settings),
    cache=cache,
    enhancer=build_prompt_enhancer(settings, enhancer_channel),
    post_processor=ImagePostProcessor(settings.image_workers),
    max_retries=settings.image_max_retries,
    retry_delay_ms=settings.image_retry_delay_ms,
    min_width=settings.image_min_width,
    output_defaults=output_defaults,
  )


def build_direct_completion_client(settings: Settings, channel: CompletionChannel, *, executor: RetryExecutor | None = None) -> TextCompletionClient:
  """Single-route client for the completion proxy endpoint, which must never call back into a proxy."""
  policy = RetryPolicy.from_ms(settings.deepseek_max_retries, settings.deepseek_retry_delay_ms)
  return TextCompletionClient([ChannelRoute(channel, policy)], executor=executor, default_model=settings.deepseek_model, default_max_tokens=settings.deepseek_max_tokens)
