"Sequential pattern_optimization -> pdf_generation -> etsy_listing workflow."

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from listify.ai.agents import BaseAgent, EtsyListingGenerator, PatternOptimizer, PdfFormatter, StepContext
from listify.ai.pipeline.contracts import STEP_ETSY_LISTING, STEP_PATTERN_OPTIMIZATION, STEP_PDF_GENERATION, WORKFLOW_STEPS, StepResult, WorkflowRunResult, WorkflowState
from listify.ai.text_completion import TextCompletionClient
from listify.utils.ids import generate_workflow_id

logger = logging.getLogger(__name__)


def _now() -> str:
  return datetime.now(timezone.utc).isoformat()


class WorkflowController:
  """Runs the three listing steps for exactly one workflow run.

  The run identifier is fixed at construction; `reset()` clears results but
  keeps it. Instances are not shared between concurrent runs.
  """

  def __init__(self, agents: Mapping[str, BaseAgent[Any]], *, workflow_id: str | None = None, request_id: str | None = None) -> None:
    missing = [step for step in WORKFLOW_STEPS if step not in agents]
    if missing:
      raise ValueError(f"Missing agents for steps: {', '.join(missing)}")
    self.agents = dict(agents)
    self.workflow_id = workflow_id or generate_workflow_id()
    self.request_id = request_id
    self.steps = WORKFLOW_STEPS
    self.results: dict[str, StepResult] = {}
    self.started_at = _now()
    self.completed_at: str | None = None
    self.last_updated = self.started_at

  @classmethod
  def from_completion(cls, completion: TextCompletionClient, **kwargs: Any) -> WorkflowController:
    agents: dict[str, BaseAgent[Any]] = {
      STEP_PATTERN_OPTIMIZATION: PatternOptimizer(completion=completion),
      STEP_PDF_GENERATION: PdfFormatter(completion=completion),
      STEP_ETSY_LISTING: EtsyListingGenerator(completion=completion),
    }
    return cls(agents, **kwargs)

  async def run_step(self, step_name: str, input_data: Any, options: Mapping[str, Any] | None = None) -> StepResult:
    """Validate input, run one step and record its result."""
    agent = self.agents.get(step_name)
    if agent is None:
      raise ValueError(f"Invalid step name: {step_name}")

    ctx = StepContext(workflow_id=self.workflow_id, request_id=self.request_id, options=dict(options or {}))
    logger.info("[%s] Running step %s", self.workflow_id, step_name)
    result = await agent.execute(input_data, ctx)
    self.results[step_name] = result
    self.last_updated = _now()
    return result

  async def run_full_workflow(self, pattern: Any, *, title: str | None = None, tags: list[str] | None = None, feature_key: str | None = None) -> WorkflowRunResult:
    """Run all steps; only a pattern_optimization failure fails the run."""
    options: dict[str, Any] = {"title": title, "tags": tags or [], "featureKey": feature_key}
    warnings: list[str] = []

    optimized = await self.run_step(STEP_PATTERN_OPTIMIZATION, pattern, options)
    if not optimized.success:
      logger.error("[%s] Workflow aborted: %s failed: %s", self.workflow_id, STEP_PATTERN_OPTIMIZATION, optimized.error)
      return self._finish(success=False, warnings=warnings, error=f"Pattern optimization failed: {optimized.error}")

    optimized_pattern = optimized.payload["optimizedPattern"]
    pdf = await self.run_step(STEP_PDF_GENERATION, {"optimizedPattern": optimized_pattern}, options)
    if pdf.success:
      listing_input = {"pdfContent": pdf.payload["pdfContent"], "optimizedPattern": optimized_pattern}
    else:
      # Skip PDF formatting and list straight from the optimized text.
      warnings.append(f"PDF generation failed ({pdf.error}); the listing was generated from the optimized pattern.")
      listing_input = {"pdfContent": optimized_pattern}

    listing = await self.run_step(STEP_ETSY_LISTING, listing_input, options)
    if not listing.success:
      warnings.append(f"Etsy listing generation failed: {listing.error}")

    return self._finish(success=True, warnings=warnings)

  def _finish(self, *, success: bool, warnings: list[str], error: str | None = None) -> WorkflowRunResult:
    self.completed_at = _now()
    self.last_updated = self.completed_at
    results: dict[str, StepResult | None] = {step: self.results.get(step) for step in self.steps}
    logger.info("[%s] Workflow finished success=%s warnings=%d", self.workflow_id, success, len(warnings))
    return WorkflowRunResult(success=success, workflow_id=self.workflow_id, results=results, warnings=warnings, error=error, started_at=self.started_at, completed_at=self.completed_at)

  def get_state(self) -> WorkflowState:
    """Snapshot of the run id and every recorded step result."""
    return WorkflowState(workflow_id=self.workflow_id, results=dict(self.results), last_updated=self.last_updated)

  def reset(self) -> None:
    """Clear step results while keeping the workflow id."""
    self.results.clear()
    self.completed_at = None
    self.last_updated = _now()
    logger.info("[%s] Workflow state reset", self.workflow_id)
