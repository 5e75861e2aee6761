"""Gemini image generation transports: google-genai SDK and plain REST over httpx."""

from __future__ import annotations

import base64
import logging
import warnings
from typing import Any

import anyio
import httpx
from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import types

from listify.ai.errors import ErrorKind, ProviderError
from listify.ai.providers.base import GenerationResponse, ImageGenerationRequest, ImageTransport

logger = logging.getLogger(__name__)

RESPONSE_MODALITIES = ["IMAGE", "TEXT"]


class GeminiSdkTransport(ImageTransport):
  """Calls Gemini through the async google-genai client."""

  name = "gemini-sdk"

  def __init__(self, *, api_key: str | None, model: str, timeout_seconds: float, client: Any | None = None) -> None:
    if client is None:
      if not api_key:
        raise ValueError("GEMINI_API_KEY environment variable is required")
      client = genai.Client(api_key=api_key)
    self._client = client
    self.model = model
    self.timeout_seconds = timeout_seconds

  async def generate(self, request: ImageGenerationRequest) -> GenerationResponse:
    options = request.options
    config = types.GenerateContentConfig(
      temperature=options.temperature, top_p=options.top_p, top_k=options.top_k, max_output_tokens=options.max_output_tokens, seed=options.seed, response_modalities=RESPONSE_MODALITIES
    )
    contents = [types.Content(role="user", parts=[types.Part.from_text(text=request.prompt), types.Part.from_bytes(data=request.image, mime_type=request.mime_type)])]

    # Use the async client to avoid blocking the asyncio event loop.
    with anyio.fail_after(self.timeout_seconds):
      response = await self._client.aio.models.generate_content(model=self.model, contents=contents, config=config)

    return GenerationResponse.decode(response.model_dump(mode="python", exclude_none=True))


class GeminiHttpTransport(ImageTransport):
  """Calls the Gemini generateContent REST endpoint, or a proxy exposing the same shape."""

  name = "gemini-http"

  def __init__(self, *, base_url: str, model: str, api_key: str | None, timeout_seconds: float, client: httpx.AsyncClient | None = None) -> None:
    self.base_url = base_url.rstrip("/")
    self.model = model
    self._api_key = api_key
    self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
    self._owns_client = client is None

  @property
  def endpoint(self) -> str:
    return f"{self.base_url}/models/{self.model}:generateContent"

  def _body(self, request: ImageGenerationRequest) -> dict[str, Any]:
    options = request.options
    generation_config: dict[str, Any] = {
      "temperature": options.temperature,
      "topP": options.top_p,
      "topK": options.top_k,
      "maxOutputTokens": options.max_output_tokens,
      "responseModalities": RESPONSE_MODALITIES,
    }
    if options.seed is not None:
      generation_config["seed"] = options.seed
    image_part = {"inlineData": {"mimeType": request.mime_type, "data": base64.b64encode(request.image).decode("ascii")}}
    return {"contents": [{"role": "user", "parts": [{"text": request.prompt}, image_part]}], "generationConfig": generation_config}

  async def generate(self, request: ImageGenerationRequest) -> GenerationResponse:
    headers = {"x-goog-api-key": self._api_key} if self._api_key else {}
    response = await self._client.post(self.endpoint, json=self._body(request), headers=headers)
    response.raise_for_status()
    try:
      payload = response.json()
    except ValueError as exc:
      raise ProviderError(ErrorKind.INVALID_RESPONSE, "Image generation response was not JSON") from exc
    return GenerationResponse.decode(payload)

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()
