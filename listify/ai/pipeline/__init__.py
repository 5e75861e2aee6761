"""Pipeline contracts for image edits and the listing workflow."""

from listify.ai.pipeline.contracts import (
  STEP_ETSY_LISTING,
  STEP_PATTERN_OPTIMIZATION,
  STEP_PDF_GENERATION,
  WORKFLOW_STEPS,
  CompletionRequest,
  EnhancedPrompt,
  GenerationOptions,
  ImageEditRequest,
  ImageEditResult,
  OutputOptions,
  RungAttempt,
  StepResult,
  WorkflowRunResult,
  WorkflowState,
)

__all__ = [
  "STEP_ETSY_LISTING",
  "STEP_PATTERN_OPTIMIZATION",
  "STEP_PDF_GENERATION",
  "WORKFLOW_STEPS",
  "CompletionRequest",
  "EnhancedPrompt",
  "GenerationOptions",
  "ImageEditRequest",
  "ImageEditResult",
  "OutputOptions",
  "RungAttempt",
  "StepResult",
  "WorkflowRunResult",
  "WorkflowState",
]
