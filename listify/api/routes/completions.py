from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from listify.ai.text_completion import TextCompletionClient
from listify.api.deps import get_completion_proxy_client
from listify.api.models import CompletionChoiceOut, CompletionMessageOut, CompletionProxyRequest, CompletionProxyResponse
from listify.core.security import require_api_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/completions", response_model=CompletionProxyResponse, dependencies=[Depends(require_api_token)])
async def create_completion(payload: CompletionProxyRequest, client: Annotated[TextCompletionClient, Depends(get_completion_proxy_client)]) -> CompletionProxyResponse:
  """
  OpenAI-shaped completion endpoint so browser clients never hold the provider key.
  Exhausted channels surface through the CompletionError handler.
  """
  system_prompt, user_prompt = payload.split_prompts()
  model = payload.model or client.default_model
  content = await client.complete(system_prompt, user_prompt, model=model, max_tokens=payload.max_tokens, feature_key=payload.feature_key)
  return CompletionProxyResponse(model=model, choices=[CompletionChoiceOut(message=CompletionMessageOut(content=content))])
