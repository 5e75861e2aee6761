"""Canned providers used when mock mode is enabled."""

from __future__ import annotations

import json
import logging

from listify.ai.errors import ErrorKind, ProviderError
from listify.ai.pipeline.contracts import CompletionRequest
from listify.ai.providers.base import CompletionChannel, ContentPart, GenerationResponse, ImageGenerationRequest, ImageTransport, InlineImage

logger = logging.getLogger(__name__)

MOCK_OPTIMIZED_PATTERN = """Classic Ribbed Beanie

Materials:
- 1 skein worsted weight yarn (100 g)
- 5 mm (US 8) 16" circular needle
- Stitch marker and tapestry needle

Gauge: 20 sts and 28 rounds = 4" in stockinette stitch.

Instructions:
1. Cast on 88 sts, place marker and join to work in the round.
2. Rib: *k2, p2* around for 6 rounds.
3. Body: knit every round for 14 rounds.
4. Crown: *k2tog* around three times (44, 22, 11 sts).
5. Cut yarn, draw through remaining sts and weave in ends."""

MOCK_PDF_MARKDOWN = """# Classic Ribbed Beanie

## Overview
A quick, beginner-friendly hat worked in the round.

## Materials & Tools
- 1 skein worsted weight yarn (100 g)
- 5 mm (US 8) 16" circular needle
- Stitch marker and tapestry needle

## Skill Level
Skill level: Beginner

## Instructions
1. Cast on 88 sts, place marker and join to work in the round.
2. Rib: *k2, p2* around for 6 rounds.
3. Body: knit every round for 14 rounds.
4. Crown: *k2tog* around three times (44, 22, 11 sts).

## Finishing
- Cut yarn, draw through remaining sts and weave in ends."""

MOCK_LISTING = {
  "title": "Classic Ribbed Beanie Knitting Pattern - Beginner Hat - PDF Download",
  "description": "A quick, beginner-friendly beanie knit in the round with clear step-by-step instructions and stitch counts.",
  "tags": ["knitting pattern", "beanie pattern", "hat pattern", "beginner knitting", "easy knit hat", "pdf pattern", "winter hat", "quick knit", "gift idea", "digital download"],
  "altTexts": ["Ribbed knit beanie laid flat on a white background"],
}


class MockCompletionChannel(CompletionChannel):
  """Returns a canned response chosen by keywords in the user prompt."""

  name = "mock"
  endpoint = "mock://completions"

  def __init__(self) -> None:
    self.calls: list[CompletionRequest] = []

  async def complete(self, request: CompletionRequest) -> str:
    self.calls.append(request)
    prompt = request.user_prompt.lower()
    if "optimize this knitting pattern" in prompt:
      return MOCK_OPTIMIZED_PATTERN
    if "format this knitting pattern for pdf" in prompt:
      return MOCK_PDF_MARKDOWN
    if "etsy listing" in prompt:
      return json.dumps(MOCK_LISTING)
    if "image editing request" in request.system_prompt.lower():
      return f"{request.user_prompt.strip()}, soft natural studio lighting, clean neutral background, product centered"
    raise ProviderError(ErrorKind.BAD_REQUEST, "No mock response available for this prompt")


class EchoImageTransport(ImageTransport):
  """Returns the submitted image unchanged as if the provider had edited it."""

  name = "mock-echo"

  async def generate(self, request: ImageGenerationRequest) -> GenerationResponse:
    logger.info("Mock image transport echoing %d bytes", len(request.image))
    return GenerationResponse.model_validate(
      {"candidates": [{"content": {"parts": [ContentPart(text="Mock edit applied."), ContentPart(inline_data=InlineImage(mime_type=request.mime_type, data=request.image))]}, "finish_reason": "STOP"}]}
    )
