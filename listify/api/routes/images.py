from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from listify.ai.image_edit import ImageEditClient
from listify.ai.pipeline.contracts import ImageEditRequest
from listify.api.deps import get_image_edit_client
from listify.api.models import ImageEditResponse, ImageEditResultBody
from listify.core.exceptions import status_for_kind
from listify.core.json import ListifyJSONResponse
from listify.core.security import require_api_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/edit-image", response_model=ImageEditResponse, response_model_by_alias=True, response_model_exclude_none=True, dependencies=[Depends(require_api_token)])
async def edit_image(payload: ImageEditRequest, request: Request, client: Annotated[ImageEditClient, Depends(get_image_edit_client)]) -> ImageEditResponse | JSONResponse:
  """Edit a product photo. Failures come back as success=false with a mapped status code."""
  request_id = getattr(request.state, "request_id", None)
  result = await client.edit_image(payload, request_id=request_id)

  response = ImageEditResponse(
    success=result.success,
    result=ImageEditResultBody(image=result.image, response_text=result.response_text, cached=result.cached) if result.success and result.image else None,
    prompt_enhanced=result.prompt_enhanced,
    enhanced_prompt=result.enhanced_prompt,
    message=result.message,
    error_kind=result.error_kind,
    request_id=request_id,
  )
  if result.success:
    return response

  status_code = status_for_kind(result.error_kind)
  logger.warning("Image edit failed request_id=%s kind=%s status=%s", request_id, result.error_kind, status_code)
  return ListifyJSONResponse(status_code=status_code, content=response.model_dump(mode="json", by_alias=True, exclude_none=True))
