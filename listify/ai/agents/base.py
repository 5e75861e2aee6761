"""Base class for workflow step agents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from listify.ai.errors import CompletionError, ErrorCode, WorkflowError, error_code_for
from listify.ai.pipeline.contracts import StepResult
from listify.ai.text_completion import TextCompletionClient

InputT = TypeVar("InputT")
OptStr = str | None


@dataclass(frozen=True)
class StepContext:
  """Per-run metadata handed to every step."""

  workflow_id: str
  request_id: OptStr = None
  options: dict[str, Any] = field(default_factory=dict)


class BaseAgent(ABC, Generic[InputT]):
  """Workflow step backed by the text completion client."""

  name: str

  def __init__(self, *, completion: TextCompletionClient, model: OptStr = None, max_tokens: int | None = None) -> None:
    self._completion = completion
    self._model = model
    self._max_tokens = max_tokens
    self._logger = logging.getLogger(f"listify.ai.agents.{self.name}")

  @abstractmethod
  def validate_input(self, input_data: Any) -> InputT:
    """Return typed input or raise WorkflowError(recoverable=False)."""

  @abstractmethod
  async def run(self, input_data: InputT, ctx: StepContext) -> dict[str, Any]:
    """Produce the step payload or raise WorkflowError."""

  async def execute(self, input_data: Any, ctx: StepContext) -> StepResult:
    """Validate, run and wrap the outcome as a StepResult."""
    try:
      typed = self.validate_input(input_data)
    except WorkflowError as exc:
      self._logger.warning("[%s] %s input rejected: %s", ctx.workflow_id, self.name, exc)
      return StepResult(success=False, error=str(exc), error_code=exc.code.value, recoverable=False)

    try:
      payload = await self.run(typed, ctx)
    except WorkflowError as exc:
      self._logger.warning("[%s] %s failed (recoverable=%s): %s", ctx.workflow_id, self.name, exc.recoverable, exc)
      return StepResult(success=False, error=str(exc), error_code=exc.code.value, recoverable=exc.recoverable)

    return StepResult(success=True, payload=payload)

  async def _complete(self, system_prompt: str, user_prompt: str, ctx: StepContext) -> str:
    """Call the completion client, converting exhaustion into a step error."""
    try:
      return await self._completion.complete(system_prompt, user_prompt, model=self._model, max_tokens=self._max_tokens, feature_key=ctx.options.get("featureKey"))
    except CompletionError as exc:
      raise WorkflowError(str(exc), step=self.name, code=error_code_for(exc.kind), recoverable=exc.retryable, metadata=exc.metadata) from exc

  def _metadata(self, ctx: StepContext) -> dict[str, Any]:
    return {"step": self.name, "workflowId": ctx.workflow_id, "requestId": ctx.request_id, "timestamp": datetime.now(timezone.utc).isoformat()}

  def _missing(self, message: str) -> WorkflowError:
    return WorkflowError(message, step=self.name, code=ErrorCode.MISSING_REQUIRED_FIELD, recoverable=False)

  def _invalid(self, message: str) -> WorkflowError:
    return WorkflowError(message, step=self.name, code=ErrorCode.INVALID_INPUT, recoverable=False)
