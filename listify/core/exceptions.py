import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError

from listify.ai.errors import CompletionError, ErrorCode, ErrorKind
from listify.config import get_settings
from listify.core.json import ListifyJSONResponse


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  # Keep native JSON primitives unchanged.
  if value is None or isinstance(value, bool | int | float | str):
    return value
  # Recursively sanitize mapping values so nested contexts remain serializable.
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  # Normalize iterable containers to lists for deterministic JSON encoding.
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Serialize exception instances explicitly to avoid leaking non-serializable objects.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def error_payload(message: str, *, request_id: str | None = None, detail: Any = None, error_kind: str | None = None) -> dict[str, Any]:
  """Build the failure body every endpoint returns: success=false plus a readable message."""
  payload: dict[str, Any] = {"success": False, "message": message}
  if detail is not None:
    payload["detail"] = _coerce_json_safe(detail)
  if error_kind:
    payload["errorKind"] = error_kind
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads (images can be megabytes)."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def status_for_kind(kind: str | None) -> int:
  """HTTP status for a failed provider-backed operation."""
  if kind == ErrorKind.INVALID_INPUT.value:
    return status.HTTP_400_BAD_REQUEST
  if kind == ErrorKind.POLICY_BLOCKED.value:
    return status.HTTP_422_UNPROCESSABLE_ENTITY
  if kind == ErrorKind.RATE_LIMIT.value:
    return status.HTTP_429_TOO_MANY_REQUESTS
  if kind == ErrorKind.TIMEOUT.value:
    return status.HTTP_504_GATEWAY_TIMEOUT
  return status.HTTP_502_BAD_GATEWAY


def status_for_step_code(code: str | None) -> int:
  """HTTP status for a failed workflow step, keyed on its ErrorCode value."""
  if code in (ErrorCode.INVALID_INPUT.value, ErrorCode.MISSING_REQUIRED_FIELD.value):
    return status.HTTP_400_BAD_REQUEST
  if code == ErrorCode.API_RATE_LIMIT.value:
    return status.HTTP_429_TOO_MANY_REQUESTS
  if code == ErrorCode.API_TIMEOUT.value:
    return status.HTTP_504_GATEWAY_TIMEOUT
  return status.HTTP_502_BAD_GATEWAY


async def global_exception_handler(request: Request, exc: Exception) -> ListifyJSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return ListifyJSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> ListifyJSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return ListifyJSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=error_payload("Request validation failed", request_id=request_id, detail=sanitized_errors))


async def http_exception_handler(request: Request, exc: HTTPException) -> ListifyJSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  headers = getattr(exc, "headers", None)
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    message = exc.detail if exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE and isinstance(exc.detail, str) else "Internal Server Error"
    return ListifyJSONResponse(status_code=exc.status_code, content=error_payload(message, request_id=request_id), headers=headers)

  # Log 4xx HTTPExceptions when explicitly enabled for debugging.
  if settings.log_http_4xx:
    logger = logging.getLogger("uvicorn.error")
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  message = exc.detail if isinstance(exc.detail, str) else "Request failed"
  return ListifyJSONResponse(status_code=exc.status_code, content=error_payload(message, request_id=request_id), headers=headers)


async def completion_exception_handler(request: Request, exc: CompletionError) -> ListifyJSONResponse:
  """Return a structured failure when every completion channel was exhausted."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Completion failure request_id=%s path=%s kind=%s attempts=%s", request_id, request.url.path, exc.kind.value, exc.metadata.get("attempts"))
  # Channel metadata stays in the logs; it can contain internal endpoints.
  return ListifyJSONResponse(status_code=status_for_kind(exc.kind.value), content=error_payload("The text completion provider is unavailable. Please try again later.", request_id=request_id, error_kind=exc.kind.value))
