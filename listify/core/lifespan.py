import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from listify.api.deps import close_clients, reset_dependency_caches
from listify.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Ensure logging is correctly set up after uvicorn starts and provider clients are closed on shutdown."""
  from listify.config import get_settings

  # Load settings for startup initialization.
  settings = get_settings()
  logger = logging.getLogger("listify.core.lifespan")

  try:
    # Initialize logging with configured settings.
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except Exception:
    # Log initialization failures but allow the app to continue starting.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  if not settings.api_tokens:
    logger.warning("LISTIFY_API_TOKENS is empty; every /api request will be rejected.")

  yield

  # Release pooled HTTP connections held by provider clients.
  try:
    await close_clients()
  finally:
    reset_dependency_caches()
  logger.info("Shutdown complete - provider clients closed.")
