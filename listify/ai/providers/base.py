"""Provider interfaces and response schemas."""

from __future__ import annotations

import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from listify.ai.errors import ErrorKind, ProviderError
from listify.ai.pipeline.contracts import CompletionRequest, GenerationOptions


class _ProviderModel(BaseModel):
  # SDK dumps use snake_case, REST payloads use camelCase; accept both.
  model_config = ConfigDict(populate_by_name=True, extra="ignore", alias_generator=to_camel)


class InlineImage(_ProviderModel):
  mime_type: str = "image/png"
  data: bytes

  @field_validator("data", mode="before")
  @classmethod
  def _decode_base64(cls, value: Any) -> Any:
    if isinstance(value, str):
      try:
        return base64.b64decode(value, validate=True)
      except (binascii.Error, ValueError) as exc:
        raise ValueError("inline image data is not valid base64") from exc
    return value


class ContentPart(_ProviderModel):
  text: str | None = None
  inline_data: InlineImage | None = None


class CandidateContent(_ProviderModel):
  parts: list[ContentPart] = Field(default_factory=list)


class Candidate(_ProviderModel):
  content: CandidateContent | None = None
  finish_reason: str | None = None

  @field_validator("finish_reason", mode="before")
  @classmethod
  def _enum_value(cls, value: Any) -> Any:
    if isinstance(value, Enum):
      return value.value
    return value


class PromptFeedback(_ProviderModel):
  block_reason: str | None = None

  @field_validator("block_reason", mode="before")
  @classmethod
  def _enum_value(cls, value: Any) -> Any:
    if isinstance(value, Enum):
      return value.value
    return value


class GenerationResponse(_ProviderModel):
  """Decoded image generation response shared by the SDK and HTTP transports."""

  candidates: list[Candidate] = Field(default_factory=list)
  prompt_feedback: PromptFeedback | None = None

  @classmethod
  def decode(cls, payload: Any) -> GenerationResponse:
    """Validate a raw payload, raising an invalid_response ProviderError on unexpected shape."""
    try:
      return cls.model_validate(payload)
    except ValidationError as exc:
      raise ProviderError(ErrorKind.INVALID_RESPONSE, f"Unexpected image generation response shape: {exc.error_count()} errors") from exc

  @property
  def block_reason(self) -> str | None:
    if self.prompt_feedback and self.prompt_feedback.block_reason and self.prompt_feedback.block_reason != "BLOCK_REASON_UNSPECIFIED":
      return self.prompt_feedback.block_reason
    return None

  @property
  def finish_reason(self) -> str | None:
    return self.candidates[0].finish_reason if self.candidates else None

  def parts(self) -> list[ContentPart]:
    return [part for candidate in self.candidates if candidate.content for part in candidate.content.parts]

  def text(self) -> str:
    """Concatenate every text part."""
    return "".join(part.text for part in self.parts() if part.text)

  def first_image(self) -> InlineImage | None:
    for part in self.parts():
      if part.inline_data is not None and part.inline_data.data:
        return part.inline_data
    return None


@dataclass(frozen=True)
class ImageGenerationRequest:
  """One call to the image generation provider."""

  prompt: str
  image: bytes
  mime_type: str
  options: GenerationOptions


class ImageTransport(ABC):
  """Strategy for reaching the image generation provider."""

  name: str

  @abstractmethod
  async def generate(self, request: ImageGenerationRequest) -> GenerationResponse:
    """Send one request and return the decoded response."""

  async def aclose(self) -> None:
    return None


class ChatMessage(_ProviderModel):
  role: str = "assistant"
  content: str | None = None


class ChatChoice(_ProviderModel):
  message: ChatMessage


class ChatCompletionResponse(BaseModel):
  """OpenAI-style completion body: {choices: [{message: {content}}]}."""

  model_config = ConfigDict(extra="ignore")

  choices: list[ChatChoice] = Field(min_length=1)

  @classmethod
  def decode(cls, payload: Any) -> ChatCompletionResponse:
    try:
      return cls.model_validate(payload)
    except ValidationError as exc:
      raise ProviderError(ErrorKind.INVALID_RESPONSE, f"Unexpected completion response shape: {exc.error_count()} errors") from exc

  def content(self) -> str:
    """Return the first choice's text, raising when it is empty."""
    text = (self.choices[0].message.content or "").strip()
    if not text:
      raise ProviderError(ErrorKind.INVALID_RESPONSE, "Completion response contained no content")
    return text


class CompletionChannel(ABC):
  """One route to a text completion provider."""

  name: str
  endpoint: str

  @abstractmethod
  async def complete(self, request: CompletionRequest) -> str:
    """Return non-empty completion text or raise."""

  async def aclose(self) -> None:
    return None
