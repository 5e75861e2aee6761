"""Provider implementations."""

from listify.ai.providers.base import ChatCompletionResponse, CompletionChannel, GenerationResponse, ImageGenerationRequest, ImageTransport
from listify.ai.providers.deepseek import BackendProxyChannel, DeepSeekChannel
from listify.ai.providers.gemini import GeminiHttpTransport, GeminiSdkTransport
from listify.ai.providers.mock import EchoImageTransport, MockCompletionChannel

__all__ = [
  "BackendProxyChannel",
  "ChatCompletionResponse",
  "CompletionChannel",
  "DeepSeekChannel",
  "EchoImageTransport",
  "GeminiHttpTransport",
  "GeminiSdkTransport",
  "GenerationResponse",
  "ImageGenerationRequest",
  "ImageTransport",
  "MockCompletionChannel",
]
