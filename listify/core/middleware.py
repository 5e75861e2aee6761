import logging
import re
import time
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from listify.utils.ids import generate_request_id

logger = logging.getLogger("listify.core.middleware")

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def _incoming_request_id(scope: Scope) -> str | None:
  """Reuse a caller-supplied X-Request-ID when it is well formed."""
  for key, value in scope.get("headers", []):
    if key.decode("latin-1").lower() == "x-request-id":
      candidate = value.decode("latin-1").strip()
      if _REQUEST_ID_RE.match(candidate):
        return candidate
  return None


def _build_request_url(scope: Scope) -> str:
  """Build a readable URL path for logging without relying on Request bodies."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"

  return path


class RequestLoggingMiddleware:
  """Assign a request id and log request/response metadata; bodies (base64 images) are never logged."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = _incoming_request_id(scope) or generate_request_id()
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)

    status_code: int | None = None

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        # Attach a request id to responses to correlate clients with server logs.
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    await self.app(scope, receive, send_wrapper)

    process_time = (time.time() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)


class SecurityHeadersMiddleware:
  """Middleware to strip sensitive headers from responses."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in ("x-powered-by", "server"):
          if name in headers:
            del headers[name]

      await send(message)

    await self.app(scope, receive, send_wrapper)
