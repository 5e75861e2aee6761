"""Shared error types and classification helpers for AI provider handling."""

from __future__ import annotations

import asyncio
import socket
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Iterable

import httpx
import openai
from google.genai import errors as genai_errors


class ErrorKind(str, Enum):
  """Classified failure kinds shared by transports, the retry executor and the pipeline."""

  TIMEOUT = "timeout"
  RATE_LIMIT = "rate_limit"
  SERVER_ERROR = "server_error"
  CONNECTION_RESET = "connection_reset"
  NETWORK = "network"
  MISSING_PAYLOAD = "missing_payload"
  INVALID_RESPONSE = "invalid_response"
  BAD_REQUEST = "bad_request"
  AUTH = "auth"
  POLICY_BLOCKED = "policy_blocked"
  INCOMPLETE = "incomplete"
  LOW_QUALITY = "low_quality"
  INVALID_INPUT = "invalid_input"
  UNKNOWN = "unknown"


RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
  {ErrorKind.TIMEOUT, ErrorKind.RATE_LIMIT, ErrorKind.SERVER_ERROR, ErrorKind.CONNECTION_RESET, ErrorKind.NETWORK, ErrorKind.MISSING_PAYLOAD, ErrorKind.INVALID_RESPONSE}
)
NETWORK_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.CONNECTION_RESET, ErrorKind.NETWORK})


class ErrorCode(str, Enum):
  """Pipeline error codes surfaced to workflow callers."""

  API_ERROR = "API_ERROR"
  API_TIMEOUT = "API_TIMEOUT"
  API_RATE_LIMIT = "API_RATE_LIMIT"
  INVALID_API_RESPONSE = "INVALID_API_RESPONSE"
  INVALID_INPUT = "INVALID_INPUT"
  MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
  STEP_FAILED = "STEP_FAILED"
  WORKFLOW_FAILED = "WORKFLOW_FAILED"
  SYSTEM_ERROR = "SYSTEM_ERROR"


class ProviderError(RuntimeError):
  """Raised by transports and channels for a classified provider failure."""

  def __init__(self, kind: ErrorKind, message: str, *, status_code: int | None = None, retry_after: float | None = None) -> None:
    super().__init__(message)
    self.kind = kind
    self.status_code = status_code
    self.retry_after = retry_after

  @property
  def retryable(self) -> bool:
    return self.kind in RETRYABLE_KINDS


class CompletionError(RuntimeError):
  """Raised when every text completion channel has been exhausted."""

  def __init__(self, kind: ErrorKind, message: str, *, metadata: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.kind = kind
    self.metadata = metadata or {}

  @property
  def retryable(self) -> bool:
    return self.kind in RETRYABLE_KINDS


class WorkflowError(RuntimeError):
  """A pipeline step failure tagged with its step name and recoverability."""

  def __init__(self, message: str, *, step: str, code: ErrorCode = ErrorCode.STEP_FAILED, recoverable: bool = False, metadata: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.step = step
    self.code = code
    self.recoverable = recoverable
    self.metadata = metadata or {}
    self.timestamp = datetime.now(timezone.utc).isoformat()

  def to_dict(self) -> dict[str, Any]:
    return {"message": str(self), "step": self.step, "code": self.code.value, "recoverable": self.recoverable, "metadata": self.metadata, "timestamp": self.timestamp}


_KIND_TO_CODE: dict[ErrorKind, ErrorCode] = {
  ErrorKind.TIMEOUT: ErrorCode.API_TIMEOUT,
  ErrorKind.RATE_LIMIT: ErrorCode.API_RATE_LIMIT,
  ErrorKind.MISSING_PAYLOAD: ErrorCode.INVALID_API_RESPONSE,
  ErrorKind.INVALID_RESPONSE: ErrorCode.INVALID_API_RESPONSE,
  ErrorKind.INVALID_INPUT: ErrorCode.INVALID_INPUT,
}


def error_code_for(kind: ErrorKind) -> ErrorCode:
  """Map a classified provider failure to the pipeline error code."""
  return _KIND_TO_CODE.get(kind, ErrorCode.API_ERROR)


_TIMEOUT_HINTS: tuple[str, ...] = ("timeout", "timed out", "etimedout", "deadline exceeded")
_RATE_LIMIT_HINTS: tuple[str, ...] = ("429", "too many requests", "rate limit", "resource exhausted", "quota")
_RESET_HINTS: tuple[str, ...] = ("econnreset", "connection reset", "connection aborted", "socket hang up")
_NETWORK_HINTS: tuple[str, ...] = ("enotfound", "eai_again", "name or service not known", "nodename nor servname", "getaddrinfo", "network is unreachable", "network")
_SERVER_HINTS: tuple[str, ...] = ("service unavailable", "bad gateway", "internal server error", "gateway timeout")
_AUTH_HINTS: tuple[str, ...] = ("api key", "unauthorized", "forbidden", "permission denied")


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  # Scan for known substrings to categorize provider errors.
  for hint in hints:
    if hint in message:
      return True
  return False


def parse_retry_after(raw: str | None, *, now: datetime | None = None) -> float | None:
  """Parse a Retry-After header given either as seconds or as an HTTP date."""
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  try:
    seconds = float(value)
  except ValueError:
    seconds = None

  if seconds is not None:
    return max(seconds, 0.0)

  try:
    when = parsedate_to_datetime(value)
  except (TypeError, ValueError):
    return None

  if when.tzinfo is None:
    when = when.replace(tzinfo=timezone.utc)
  reference = now or datetime.now(timezone.utc)
  return max((when - reference).total_seconds(), 0.0)


def kind_for_status(status_code: int) -> ErrorKind:
  """Classify an HTTP status code."""
  if status_code == 429:
    return ErrorKind.RATE_LIMIT
  if status_code in {408, 504}:
    return ErrorKind.TIMEOUT
  if status_code >= 500:
    return ErrorKind.SERVER_ERROR
  if status_code in {401, 403}:
    return ErrorKind.AUTH
  return ErrorKind.BAD_REQUEST


def classify_exception(exc: BaseException) -> ProviderError:
  """Turn any raised exception into a classified ProviderError."""
  if isinstance(exc, ProviderError):
    return exc

  message = str(exc) or type(exc).__name__

  # httpx: proxy and REST channels.
  if isinstance(exc, httpx.HTTPStatusError):
    status_code = exc.response.status_code
    retry_after = parse_retry_after(exc.response.headers.get("retry-after"))
    return ProviderError(kind_for_status(status_code), message, status_code=status_code, retry_after=retry_after)
  if isinstance(exc, httpx.TimeoutException):
    return ProviderError(ErrorKind.TIMEOUT, message)
  if isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
    return ProviderError(ErrorKind.CONNECTION_RESET, message)
  if isinstance(exc, httpx.TransportError):
    return ProviderError(ErrorKind.NETWORK, message)

  # openai: DeepSeek-compatible direct channel.
  if isinstance(exc, openai.APITimeoutError):
    return ProviderError(ErrorKind.TIMEOUT, message)
  if isinstance(exc, openai.APIConnectionError):
    kind = ErrorKind.CONNECTION_RESET if _match_hint(message.lower(), _RESET_HINTS) else ErrorKind.NETWORK
    return ProviderError(kind, message)
  if isinstance(exc, openai.APIStatusError):
    status_code = exc.status_code
    retry_after = parse_retry_after(exc.response.headers.get("retry-after")) if exc.response is not None else None
    return ProviderError(kind_for_status(status_code), message, status_code=status_code, retry_after=retry_after)

  # google-genai: SDK image transport.
  if isinstance(exc, genai_errors.APIError):
    status_code = exc.code if isinstance(exc.code, int) else 500
    return ProviderError(kind_for_status(status_code), message, status_code=status_code)

  # Standard library network failures.
  if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
    return ProviderError(ErrorKind.TIMEOUT, message)
  if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
    return ProviderError(ErrorKind.CONNECTION_RESET, message)
  if isinstance(exc, (socket.gaierror, ConnectionError)):
    return ProviderError(ErrorKind.NETWORK, message)

  # Fall back to message hints for wrapped errors.
  lowered = message.lower()
  if _match_hint(lowered, _TIMEOUT_HINTS):
    return ProviderError(ErrorKind.TIMEOUT, message)
  if _match_hint(lowered, _RATE_LIMIT_HINTS):
    return ProviderError(ErrorKind.RATE_LIMIT, message)
  if _match_hint(lowered, _RESET_HINTS):
    return ProviderError(ErrorKind.CONNECTION_RESET, message)
  if _match_hint(lowered, _SERVER_HINTS):
    return ProviderError(ErrorKind.SERVER_ERROR, message)
  if _match_hint(lowered, _AUTH_HINTS):
    return ProviderError(ErrorKind.AUTH, message)
  if _match_hint(lowered, _NETWORK_HINTS):
    return ProviderError(ErrorKind.NETWORK, message)
  return ProviderError(ErrorKind.UNKNOWN, message)
