from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from listify.ai.errors import CompletionError
from listify.api.routes import completions, images, workflow
from listify.config import get_settings
from listify.core.exceptions import completion_exception_handler, global_exception_handler, http_exception_handler, request_validation_exception_handler
from listify.core.json import ListifyJSONResponse
from listify.core.lifespan import lifespan
from listify.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

settings = get_settings()

app = FastAPI(title="Listify Engine", default_response_class=ListifyJSONResponse, lifespan=lifespan, docs_url="/docs" if settings.debug else None, redoc_url=None, openapi_url="/openapi.json" if settings.debug else None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization", "x-request-id"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(CompletionError, completion_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok"}


app.include_router(images.router, prefix="/api", tags=["images"])
app.include_router(workflow.router, prefix="/api", tags=["workflow"])
app.include_router(completions.router, prefix="/api", tags=["completions"])
