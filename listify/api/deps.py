"""Shared FastAPI dependencies for provider clients."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from listify.ai.image_edit import ImageEditClient
from listify.ai.orchestrator import WorkflowController
from listify.ai.providers.base import CompletionChannel
from listify.ai.text_completion import TextCompletionClient
from listify.config import get_settings
from listify.services import factory
from listify.storage.content_cache import ContentCache

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_content_cache() -> ContentCache:
  """One cache per process so every request shares generated artifacts."""
  return factory.build_cache(get_settings())


@lru_cache(maxsize=1)
def _direct_channel() -> CompletionChannel | None:
  settings = get_settings()
  try:
    return factory.build_direct_channel(settings)
  except ValueError as exc:
    logger.warning("Direct completion channel unavailable: %s", exc)
    return None


@lru_cache(maxsize=1)
def _completion_proxy_client() -> TextCompletionClient | None:
  channel = _direct_channel()
  if channel is None:
    return None
  return factory.build_direct_completion_client(get_settings(), channel)


def get_completion_proxy_client() -> TextCompletionClient:
  """The provider-facing client behind the completion proxy endpoint."""
  client = _completion_proxy_client()
  if client is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Text completion provider is not configured.")
  return client


@lru_cache(maxsize=1)
def _text_completion_client() -> TextCompletionClient | None:
  settings = get_settings()
  channel = _direct_channel()
  if channel is None and not settings.completion_proxy_url:
    return None
  return factory.build_text_completion_client(settings, direct_channel=channel)


def get_text_completion_client() -> TextCompletionClient:
  client = _text_completion_client()
  if client is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Text completion provider is not configured.")
  return client


@lru_cache(maxsize=1)
def _image_edit_client() -> ImageEditClient | None:
  settings = get_settings()
  try:
    return factory.build_image_edit_client(settings, cache=get_content_cache(), enhancer_channel=_direct_channel())
  except ValueError as exc:
    logger.warning("Image edit client unavailable: %s", exc)
    return None


def get_image_edit_client() -> ImageEditClient:
  client = _image_edit_client()
  if client is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Image provider is not configured.")
  return client


def get_workflow_controller(request: Request, completion: Annotated[TextCompletionClient, Depends(get_text_completion_client)]) -> WorkflowController:
  """A fresh controller per request; one controller models one run."""
  return WorkflowController.from_completion(completion, request_id=getattr(request.state, "request_id", None))


async def close_clients() -> None:
  """Close pooled HTTP clients created by the dependency caches."""
  for cached, closer in ((_text_completion_client, "aclose"), (_direct_channel, "aclose")):
    if cached.cache_info().currsize:
      instance = cached()
      if instance is not None:
        await getattr(instance, closer)()
  if _image_edit_client.cache_info().currsize:
    client = _image_edit_client()
    if client is not None:
      await client.transport.aclose()


def reset_dependency_caches() -> None:
  for cached in (get_content_cache, _direct_channel, _text_completion_client, _completion_proxy_client, _image_edit_client):
    cached.cache_clear()
