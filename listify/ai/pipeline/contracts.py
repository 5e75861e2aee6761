"""Shared data contracts for image edits and the listing workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

STEP_PATTERN_OPTIMIZATION = "pattern_optimization"
STEP_PDF_GENERATION = "pdf_generation"
STEP_ETSY_LISTING = "etsy_listing"
WORKFLOW_STEPS: tuple[str, ...] = (STEP_PATTERN_OPTIMIZATION, STEP_PDF_GENERATION, STEP_ETSY_LISTING)


class CamelModel(BaseModel):
  model_config = ConfigDict(populate_by_name=True, extra="ignore", alias_generator=to_camel)


class GenerationOptions(CamelModel):
  """Sampling settings forwarded to the image generation provider."""

  temperature: float = Field(default=0.2, ge=0.0, le=2.0)
  top_p: float = Field(default=0.9, gt=0.0, le=1.0)
  top_k: int = Field(default=64, ge=1)
  max_output_tokens: int = Field(default=4096, ge=1)
  seed: int | None = None


class OutputOptions(CamelModel):
  """Target geometry and encoding of the post-processed image."""

  width: int = Field(default=1200, ge=1, le=8192)
  height: int = Field(default=1200, ge=1, le=8192)
  format: Literal["png", "jpeg", "webp"] = "png"
  quality: int = Field(default=90, ge=1, le=100)


class ImageEditRequest(CamelModel):
  """An image edit job. Immutable once submitted."""

  model_config = ConfigDict(populate_by_name=True, extra="ignore", alias_generator=to_camel, frozen=True)

  image: str = Field(min_length=1, description="Data URL or raw base64 image")
  prompt: str = Field(min_length=1)
  category: str = "general"
  platform: str = "etsy"
  feature_key: str | None = None
  generation_options: GenerationOptions = Field(default_factory=GenerationOptions)
  output_options: OutputOptions | None = None


class EnhancedPrompt(CamelModel):
  """Outcome of best-effort prompt enhancement."""

  original: str
  enhanced: str | None = None
  was_enhanced: bool = False

  @property
  def text(self) -> str:
    return self.enhanced if self.was_enhanced and self.enhanced else self.original


class RungAttempt(CamelModel):
  """Audit record of one rung of the image generation fallback ladder."""

  rung: str
  attempts: int
  success: bool
  error_kind: str | None = None
  error: str | None = None


class ImageEditResult(CamelModel):
  """Structured outcome of an image edit; failures are reported, never raised."""

  success: bool
  message: str
  image: str | None = None
  response_text: str | None = None
  cached: bool = False
  prompt_enhanced: bool = False
  enhanced_prompt: str | None = None
  error_kind: str | None = None
  processing_time_ms: float | None = None
  attempts: list[RungAttempt] = Field(default_factory=list)


@dataclass(frozen=True)
class CompletionRequest:
  """A single text completion job."""

  system_prompt: str
  user_prompt: str
  model: str
  max_tokens: int
  feature_key: str | None = None

  def messages(self) -> list[dict[str, str]]:
    return [{"role": "system", "content": self.system_prompt}, {"role": "user", "content": self.user_prompt}]


class StepResult(CamelModel):
  """Result of one workflow step; `payload` feeds the next step's input."""

  success: bool
  payload: dict[str, Any] = Field(default_factory=dict)
  error: str | None = None
  error_code: str | None = None
  recoverable: bool | None = None


class WorkflowRunResult(CamelModel):
  """Outcome of a full pattern_optimization -> pdf_generation -> etsy_listing run."""

  success: bool
  workflow_id: str
  results: dict[str, StepResult | None]
  warnings: list[str] = Field(default_factory=list)
  error: str | None = None
  started_at: str
  completed_at: str


class WorkflowState(CamelModel):
  """Snapshot of a controller's progress."""

  workflow_id: str
  results: dict[str, StepResult]
  last_updated: str
