"""Image edit orchestration: cache, prompt enhancement, fallback ladder and post-processing."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from listify.ai.backoff import FatalFailure, RetryableFailure, RetryError, RetryExecutor, RetryPolicy, Success
from listify.ai.enhancer import PromptEnhancer
from listify.ai.errors import ErrorKind
from listify.ai.image_processing import ImagePostProcessor
from listify.ai.pipeline.contracts import EnhancedPrompt, ImageEditRequest, ImageEditResult, OutputOptions, RungAttempt
from listify.ai.prompts import build_explicit_image_prompt, build_primary_image_prompt, build_simplified_image_prompt
from listify.ai.providers.base import ImageGenerationRequest, ImageTransport, InlineImage
from listify.storage.content_cache import ContentCache, fingerprint
from listify.utils.data_url import InvalidImagePayload, build_data_url, parse_image_payload
from listify.utils.ids import generate_request_id

logger = logging.getLogger(__name__)

# Failures that no alternative prompt can fix.
_LADDER_STOPPERS = frozenset({ErrorKind.POLICY_BLOCKED, ErrorKind.AUTH, ErrorKind.BAD_REQUEST})


@dataclass(frozen=True)
class _Rung:
  name: str
  build_prompt: Callable[[str], str]
  policy: RetryPolicy


@dataclass(frozen=True)
class _Generated:
  image: InlineImage
  text: str


class ImageEditClient:
  """Edit one product image per call. Every outcome is returned as an ImageEditResult, never raised."""

  def __init__(
    self,
    *,
    transport: ImageTransport,
    cache: ContentCache,
    enhancer: PromptEnhancer | None = None,
    post_processor: ImagePostProcessor | None = None,
    executor: RetryExecutor | None = None,
    max_retries: int = 2,
    retry_delay_ms: int = 1000,
    min_width: int = 500,
    output_defaults: OutputOptions | None = None,
  ) -> None:
    self.transport = transport
    self.cache = cache
    self.enhancer = enhancer
    self.post_processor = post_processor or ImagePostProcessor()
    self.executor = executor or RetryExecutor()
    self.primary_policy = RetryPolicy.from_ms(max_retries, retry_delay_ms)
    self.fallback_policy = RetryPolicy.from_ms(0, retry_delay_ms)
    self.min_width = min_width
    self.output_defaults = output_defaults or OutputOptions()

  def _rungs(self, category: str | None, platform: str | None) -> list[_Rung]:
    return [
      _Rung("primary", lambda prompt: build_primary_image_prompt(prompt, category=category, platform=platform), self.primary_policy),
      _Rung("simplified", build_simplified_image_prompt, self.fallback_policy),
      _Rung("explicit", build_explicit_image_prompt, self.fallback_policy),
    ]

  async def edit_image(self, request: ImageEditRequest, *, request_id: str | None = None) -> ImageEditResult:
    request_id = request_id or generate_request_id()
    started = time.perf_counter()

    def _elapsed() -> float:
      return round((time.perf_counter() - started) * 1000, 2)

    try:
      payload = parse_image_payload(request.image)
    except InvalidImagePayload as exc:
      logger.warning("[%s] Rejected image edit input: %s", request_id, exc)
      return ImageEditResult(success=False, message=f"Invalid image input: {exc}", error_kind=ErrorKind.INVALID_INPUT.value, processing_time_ms=_elapsed())

    # Keyed on the caller's literal prompt, before enhancement.
    cache_key = fingerprint(payload, request.prompt)
    cached = await self._cache_get(cache_key, request_id)
    if cached is not None:
      logger.info("[%s] Image edit cache hit key=%s", request_id, cache_key[:12])
      return ImageEditResult(success=True, message="Image edit retrieved from cache.", image=cached, response_text="Image retrieved from cache", cached=True, processing_time_ms=_elapsed())

    enhanced = await self._enhance(request, request_id)
    final_prompt = enhanced.text

    attempts: list[RungAttempt] = []
    generated: _Generated | None = None
    last_kind = ErrorKind.MISSING_PAYLOAD
    last_message = "No image was returned"
    for rung in self._rungs(request.category, request.platform):
      generation_request = ImageGenerationRequest(prompt=rung.build_prompt(final_prompt), image=payload.data, mime_type=payload.mime_type, options=request.generation_options)
      calls = [0]

      async def _attempt(req: ImageGenerationRequest = generation_request, calls: list[int] = calls) -> Success[_Generated] | RetryableFailure | FatalFailure:
        calls[0] += 1
        return await self._generate_once(req)

      try:
        generated = await self.executor.execute(_attempt, policy=rung.policy, label=f"image edit {rung.name} [{request_id}]")
      except RetryError as exc:
        attempts.append(RungAttempt(rung=rung.name, attempts=exc.attempt_count, success=False, error_kind=exc.kind.value, error=str(exc)))
        last_kind, last_message = exc.kind, str(exc)
        if exc.kind in _LADDER_STOPPERS:
          logger.warning("[%s] Image edit stopped at %s rung: %s", request_id, rung.name, exc)
          break
        logger.info("[%s] Image edit %s rung failed (%s); moving to next fallback", request_id, rung.name, exc.kind.value)
        continue

      quality_failure = await self._check_quality(generated.image.data, request_id)
      if quality_failure is not None:
        attempts.append(RungAttempt(rung=rung.name, attempts=calls[0], success=False, error_kind=ErrorKind.LOW_QUALITY.value, error=quality_failure))
        last_kind, last_message = ErrorKind.LOW_QUALITY, quality_failure
        generated = None
        continue

      attempts.append(RungAttempt(rung=rung.name, attempts=calls[0], success=True))
      break

    if generated is None:
      return ImageEditResult(
        success=False,
        message=_failure_message(last_kind, last_message),
        error_kind=_reported_kind(last_kind).value,
        prompt_enhanced=enhanced.was_enhanced,
        enhanced_prompt=enhanced.enhanced,
        processing_time_ms=_elapsed(),
        attempts=attempts,
      )

    artifact = await self._post_process(generated.image, request.output_options or self.output_defaults, request_id)
    await self._cache_set(cache_key, artifact, request_id)
    logger.info("[%s] Image edit succeeded after %d rung(s) in %.0fms", request_id, len(attempts), _elapsed())
    return ImageEditResult(
      success=True,
      message="Image edited successfully.",
      image=artifact,
      response_text=generated.text or None,
      prompt_enhanced=enhanced.was_enhanced,
      enhanced_prompt=enhanced.enhanced,
      processing_time_ms=_elapsed(),
      attempts=attempts,
    )

  async def _enhance(self, request: ImageEditRequest, request_id: str) -> EnhancedPrompt:
    if self.enhancer is None:
      return EnhancedPrompt(original=request.prompt)
    return await self.enhancer.enhance(request.prompt, category=request.category, platform=request.platform, request_id=request_id, feature_key=request.feature_key)

  async def _cache_get(self, key: str, request_id: str) -> str | None:
    try:
      return await self.cache.get(key)
    except Exception as exc:  # noqa: BLE001
      logger.warning("[%s] Cache read failed; treating as a miss: %s", request_id, exc)
      return None

  async def _cache_set(self, key: str, artifact: str, request_id: str) -> None:
    try:
      await self.cache.set(key, artifact)
    except Exception as exc:  # noqa: BLE001
      # The generated image is still returned to the caller.
      logger.warning("[%s] Cache write failed: %s", request_id, exc)

  async def _generate_once(self, generation_request: ImageGenerationRequest) -> Success[_Generated] | RetryableFailure | FatalFailure:
    response = await self.transport.generate(generation_request)

    if response.block_reason:
      return FatalFailure(ErrorKind.POLICY_BLOCKED, f"Content blocked by provider policy: {response.block_reason}")

    if not response.candidates:
      return RetryableFailure(ErrorKind.MISSING_PAYLOAD, "Provider returned no candidates")

    finish_reason = response.finish_reason
    if finish_reason and finish_reason != "STOP":
      return FatalFailure(ErrorKind.INCOMPLETE, f"Generation finished with reason {finish_reason}")

    image = response.first_image()
    if image is None:
      return RetryableFailure(ErrorKind.MISSING_PAYLOAD, "No image found in provider response")

    return Success(_Generated(image=image, text=response.text()))

  async def _check_quality(self, data: bytes, request_id: str) -> str | None:
    try:
      width, _ = await self.post_processor.measure(data)
    except Exception as exc:  # noqa: BLE001
      logger.warning("[%s] Could not measure generated image; skipping width check: %s", request_id, exc)
      return None
    if width < self.min_width:
      logger.warning("[%s] Generated image width %dpx is below minimum %dpx", request_id, width, self.min_width)
      return f"Generated image width {width}px is below the {self.min_width}px minimum"
    return None

  async def _post_process(self, image: InlineImage, options: OutputOptions, request_id: str) -> str:
    try:
      processed = await self.post_processor.process(image.data, options)
    except Exception as exc:  # noqa: BLE001
      logger.warning("[%s] Post-processing failed; returning unprocessed image: %s", request_id, exc)
      return build_data_url(image.data, image.mime_type)
    return build_data_url(processed.data, processed.mime_type)


def _reported_kind(kind: ErrorKind) -> ErrorKind:
  # An incomplete generation that survives every fallback is reported as a refusal.
  if kind == ErrorKind.INCOMPLETE:
    return ErrorKind.POLICY_BLOCKED
  return kind


def _failure_message(kind: ErrorKind, detail: str) -> str:
  if kind == ErrorKind.POLICY_BLOCKED:
    return f"The image provider refused this request under its content policy. {detail}"
  if kind == ErrorKind.INCOMPLETE:
    return f"The image provider stopped before producing an image; the request may violate its content policy. {detail}"
  if kind == ErrorKind.LOW_QUALITY:
    return f"The generated image did not meet the minimum quality requirements. {detail}"
  if kind == ErrorKind.AUTH:
    return "The image provider rejected our credentials."
  return f"No image could be generated after all fallback attempts. {detail}"
