from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from listify.ai.pipeline.contracts import CamelModel


class ImageEditResultBody(CamelModel):
  """The image payload of a successful edit."""

  image: str
  response_text: str | None = None
  cached: bool = False


class ImageEditResponse(CamelModel):
  """Response body of POST /api/edit-image."""

  success: bool
  result: ImageEditResultBody | None = None
  prompt_enhanced: bool = False
  enhanced_prompt: str | None = None
  message: str
  error_kind: str | None = None
  request_id: str | None = None


class WorkflowRunRequest(CamelModel):
  """Run all three listing steps for one knitting pattern."""

  pattern: StrictStr = Field(description="The raw knitting pattern text.")
  title: StrictStr | None = Field(default=None, description="Optional listing title hint.")
  tags: list[StrictStr] = Field(default_factory=list, max_length=13, description="Optional listing tags.")
  feature_key: StrictStr | None = None


class WorkflowStepRequest(CamelModel):
  """Run a single step with caller-supplied input."""

  input: Any = Field(description="A pattern string or the previous step's payload.")
  options: dict[str, Any] = Field(default_factory=dict)


class ChatMessageIn(BaseModel):
  role: Literal["system", "user", "assistant"]
  content: StrictStr

  model_config = ConfigDict(extra="ignore")


class CompletionProxyRequest(BaseModel):
  """OpenAI-shaped chat completion request accepted by the completion proxy."""

  model: StrictStr | None = None
  messages: list[ChatMessageIn] = Field(min_length=1)
  max_tokens: int | None = Field(default=None, ge=1, le=32768)
  feature_key: StrictStr | None = Field(default=None, alias="featureKey")

  model_config = ConfigDict(populate_by_name=True, extra="ignore")

  @field_validator("messages")
  @classmethod
  def _require_user_message(cls, value: list[ChatMessageIn]) -> list[ChatMessageIn]:
    if not any(message.role == "user" for message in value):
      raise ValueError("At least one user message is required.")
    return value

  def split_prompts(self) -> tuple[str, str]:
    """Collapse the message list into the system/user prompt pair the channels accept."""
    system = "\n\n".join(message.content for message in self.messages if message.role == "system")
    user = "\n\n".join(message.content for message in self.messages if message.role != "system")
    return system, user


class CompletionMessageOut(BaseModel):
  role: str = "assistant"
  content: str


class CompletionChoiceOut(BaseModel):
  index: int = 0
  message: CompletionMessageOut
  finish_reason: str = "stop"


class CompletionProxyResponse(BaseModel):
  model: str
  choices: list[CompletionChoiceOut]


__all__ = [
  "ChatMessageIn",
  "CompletionChoiceOut",
  "CompletionMessageOut",
  "CompletionProxyRequest",
  "CompletionProxyResponse",
  "ImageEditResponse",
  "ImageEditResultBody",
  "WorkflowRunRequest",
  "WorkflowStepRequest",
]
