from __future__ import annotations

from typing import Any

from listify.ai.agents.base import BaseAgent, StepContext
from listify.ai.errors import ErrorCode, WorkflowError
from listify.ai.pipeline.contracts import STEP_ETSY_LISTING
from listify.ai.prompts import LISTING_SYSTEM_PROMPT, build_listing_prompt
from listify.ai.utils.listing import parse_listing
from listify.ai.utils.pattern_markdown import markdown_to_pattern


class EtsyListingGenerator(BaseAgent[str]):
  """Write an Etsy listing (title, description, tags, alt texts) for the formatted pattern."""

  name = STEP_ETSY_LISTING

  def validate_input(self, input_data: Any) -> str:
    if not isinstance(input_data, dict):
      raise self._invalid("Listing input must be an object")
    for field_name in ("pdfContent", "optimizedPattern"):
      content = input_data.get(field_name)
      if isinstance(content, str) and content.strip():
        return content
    raise self._missing("Missing required field: pdfContent or optimizedPattern")

  async def run(self, input_data: str, ctx: StepContext) -> dict[str, Any]:
    structured = markdown_to_pattern(input_data)
    tags = ctx.options.get("tags") or []
    prompt = build_listing_prompt(structured, title=ctx.options.get("title"), tags=list(tags))
    listing = parse_listing(await self._complete(LISTING_SYSTEM_PROMPT, prompt, ctx))

    if not listing["title"] and not listing["description"]:
      raise WorkflowError("Listing response had neither a title nor a description", step=self.name, code=ErrorCode.INVALID_API_RESPONSE, recoverable=True)

    self._logger.info("[%s] Listing generated with %d tags", ctx.workflow_id, len(listing["tags"]))
    return {**listing, "metadata": self._metadata(ctx)}
