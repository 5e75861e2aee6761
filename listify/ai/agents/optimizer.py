from __future__ import annotations

from typing import Any

from listify.ai.agents.base import BaseAgent, StepContext
from listify.ai.errors import ErrorCode, WorkflowError
from listify.ai.pipeline.contracts import STEP_PATTERN_OPTIMIZATION
from listify.ai.prompts import OPTIMIZE_PATTERN_PROMPT, TEXT_SYSTEM_PROMPT

MIN_OPTIMIZED_CHARS = 10


class PatternOptimizer(BaseAgent[str]):
  """Rewrite a raw knitting pattern for clarity and technical accuracy."""

  name = STEP_PATTERN_OPTIMIZATION

  def validate_input(self, input_data: Any) -> str:
    if not isinstance(input_data, str):
      raise self._invalid("Pattern must be a string")
    if not input_data.strip():
      raise self._missing("Pattern must be a non-empty string")
    return input_data

  async def run(self, input_data: str, ctx: StepContext) -> dict[str, Any]:
    optimized = await self._complete(TEXT_SYSTEM_PROMPT, OPTIMIZE_PATTERN_PROMPT.format(pattern=input_data), ctx)
    if len(optimized.strip()) < MIN_OPTIMIZED_CHARS:
      raise WorkflowError("Optimized pattern is too short to be valid", step=self.name, code=ErrorCode.INVALID_API_RESPONSE, recoverable=True)

    self._logger.info("[%s] Pattern optimized (%d -> %d chars)", ctx.workflow_id, len(input_data), len(optimized))
    return {"optimizedPattern": optimized, "originalPattern": input_data, "metadata": self._metadata(ctx)}
