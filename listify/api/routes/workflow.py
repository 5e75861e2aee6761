from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from listify.ai.orchestrator import WorkflowController
from listify.ai.pipeline.contracts import STEP_PATTERN_OPTIMIZATION, WORKFLOW_STEPS, StepResult, WorkflowRunResult
from listify.api.deps import get_workflow_controller
from listify.api.models import WorkflowRunRequest, WorkflowStepRequest
from listify.core.exceptions import status_for_step_code
from listify.core.json import ListifyJSONResponse
from listify.core.security import require_api_token

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_api_token)])


def _body(dumped: dict[str, Any], message: str, request_id: str | None) -> dict[str, Any]:
  body = {**dumped, "message": message}
  if request_id:
    body["requestId"] = request_id
  return body


@router.post("/workflow/run", response_model=WorkflowRunResult, response_model_by_alias=True)
async def run_workflow(payload: WorkflowRunRequest, request: Request, controller: Annotated[WorkflowController, Depends(get_workflow_controller)]) -> WorkflowRunResult | JSONResponse:
  """Optimize a pattern, format it for PDF and draft the Etsy listing."""
  request_id = getattr(request.state, "request_id", None)
  result = await controller.run_full_workflow(payload.pattern, title=payload.title, tags=payload.tags, feature_key=payload.feature_key)
  if result.success:
    message = f"Workflow completed with {len(result.warnings)} warning(s)." if result.warnings else "Workflow completed successfully."
    return ListifyJSONResponse(content=_body(result.model_dump(mode="json", by_alias=True), message, request_id))

  first = result.results.get(STEP_PATTERN_OPTIMIZATION)
  status_code = status_for_step_code(first.error_code if first else None)
  body = _body(result.model_dump(mode="json", by_alias=True), result.error or "Workflow failed", request_id)
  return ListifyJSONResponse(status_code=status_code, content=body)


@router.post("/workflow/steps/{step_name}", response_model=StepResult, response_model_by_alias=True)
async def run_workflow_step(step_name: str, payload: WorkflowStepRequest, request: Request, controller: Annotated[WorkflowController, Depends(get_workflow_controller)]) -> StepResult | JSONResponse:
  """Run one step with caller-supplied input."""
  if step_name not in WORKFLOW_STEPS:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown workflow step: {step_name}")

  request_id = getattr(request.state, "request_id", None)
  result = await controller.run_step(step_name, payload.input, payload.options)
  if result.success:
    return ListifyJSONResponse(content=_body(result.model_dump(mode="json", by_alias=True), f"Step {step_name} completed successfully.", request_id))

  body = _body(result.model_dump(mode="json", by_alias=True), result.error or f"Step {step_name} failed", request_id)
  return ListifyJSONResponse(status_code=status_for_step_code(result.error_code), content=body)
