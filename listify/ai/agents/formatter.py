from __future__ import annotations

from typing import Any

from listify.ai.agents.base import BaseAgent, StepContext
from listify.ai.json_parser import strip_json_fences
from listify.ai.pipeline.contracts import STEP_PDF_GENERATION
from listify.ai.prompts import FORMAT_PDF_PROMPT, TEXT_SYSTEM_PROMPT
from listify.ai.utils.pattern_markdown import markdown_to_pattern


class PdfFormatter(BaseAgent[str]):
  """Turn the optimized pattern into PDF-ready markdown."""

  name = STEP_PDF_GENERATION

  def validate_input(self, input_data: Any) -> str:
    if not isinstance(input_data, dict):
      raise self._invalid("PDF generation input must be an object")
    optimized = input_data.get("optimizedPattern")
    if not isinstance(optimized, str) or not optimized.strip():
      raise self._missing("Missing required field: optimizedPattern")
    return optimized

  async def run(self, input_data: str, ctx: StepContext) -> dict[str, Any]:
    markdown = strip_json_fences(await self._complete(TEXT_SYSTEM_PROMPT, FORMAT_PDF_PROMPT.format(pattern=input_data), ctx))
    self._logger.info("[%s] Pattern formatted for PDF (%d chars)", ctx.workflow_id, len(markdown))
    return {"pdfContent": markdown, "structuredPattern": markdown_to_pattern(markdown), "metadata": self._metadata(ctx)}
