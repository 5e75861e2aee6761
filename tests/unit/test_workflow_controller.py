from __future__ import annotations

import re

import pytest

from listify.ai.backoff import RetryPolicy
from listify.ai.errors import ErrorCode, ErrorKind, ProviderError
from listify.ai.orchestrator import WorkflowController
from listify.ai.pipeline.contracts import CompletionRequest, STEP_ETSY_LISTING, STEP_PATTERN_OPTIMIZATION, STEP_PDF_GENERATION
from listify.ai.providers.mock import MOCK_LISTING, MOCK_OPTIMIZED_PATTERN, MockCompletionChannel
from listify.ai.text_completion import ChannelRoute, TextCompletionClient

PATTERN = "Cast on 20 stitches. Knit every row for 40 rows. Bind off and weave in ends."


class _FailingStepChannel(MockCompletionChannel):
  """Mock channel that fails every request whose user prompt contains a marker."""

  def __init__(self, marker: str, error: Exception) -> None:
    super().__init__()
    self.marker = marker
    self.error = error

  async def complete(self, request: CompletionRequest) -> str:
    if self.marker in request.user_prompt.lower():
      self.calls.append(request)
      raise self.error
    return await super().complete(request)


def _controller(channel: MockCompletionChannel, executor, *, max_retries: int = 1) -> WorkflowController:
  completion = TextCompletionClient([ChannelRoute(channel, RetryPolicy(max_retries=max_retries, initial_delay=0.1))], executor=executor)
  return WorkflowController.from_completion(completion, request_id="req-test")


@pytest.mark.anyio
async def test_full_workflow_runs_all_steps(executor) -> None:
  channel = MockCompletionChannel()
  controller = _controller(channel, executor)

  result = await controller.run_full_workflow(PATTERN, title="Garter Scarf", tags=["scarf"])

  assert result.success is True
  assert result.warnings == []
  assert re.fullmatch(r"wf_\d+_[a-z0-9]{9}", result.workflow_id)
  optimized = result.results[STEP_PATTERN_OPTIMIZATION]
  assert optimized.payload["optimizedPattern"] == MOCK_OPTIMIZED_PATTERN
  assert optimized.payload["originalPattern"] == PATTERN
  pdf = result.results[STEP_PDF_GENERATION]
  assert pdf.payload["pdfContent"].startswith("# Classic Ribbed Beanie")
  assert pdf.payload["structuredPattern"]["skillLevel"] == "Beginner"
  listing = result.results[STEP_ETSY_LISTING]
  assert listing.payload["title"] == MOCK_LISTING["title"]
  assert listing.payload["metadata"]["workflowId"] == result.workflow_id
  assert len(channel.calls) == 3
  assert "Title: Garter Scarf" in channel.calls[2].user_prompt
  assert "Additional Tags: scarf" in channel.calls[2].user_prompt


@pytest.mark.anyio
async def test_empty_pattern_fails_the_run_without_calling_the_provider(executor) -> None:
  channel = MockCompletionChannel()
  controller = _controller(channel, executor)

  result = await controller.run_full_workflow("   ")

  assert result.success is False
  assert "Pattern optimization failed" in result.error
  assert result.results[STEP_PATTERN_OPTIMIZATION].error_code == ErrorCode.MISSING_REQUIRED_FIELD.value
  assert result.results[STEP_PATTERN_OPTIMIZATION].recoverable is False
  assert result.results[STEP_PDF_GENERATION] is None
  assert result.results[STEP_ETSY_LISTING] is None
  assert channel.calls == []


@pytest.mark.anyio
async def test_pdf_failure_degrades_to_optimized_pattern(executor) -> None:
  channel = _FailingStepChannel("format this knitting pattern for pdf", ProviderError(ErrorKind.SERVER_ERROR, "503"))
  controller = _controller(channel, executor)

  result = await controller.run_full_workflow(PATTERN)

  assert result.success is True
  assert len(result.warnings) == 1
  assert "PDF generation failed" in result.warnings[0]
  pdf = result.results[STEP_PDF_GENERATION]
  assert pdf.success is False
  assert pdf.recoverable is True
  assert result.results[STEP_ETSY_LISTING].success is True
  # Listing was built from the optimized text, which has no markdown title.
  assert "Title: Knitting Pattern" in channel.calls[-1].user_prompt


@pytest.mark.anyio
async def test_listing_failure_is_a_warning(executor) -> None:
  channel = _FailingStepChannel("etsy listing", ProviderError(ErrorKind.AUTH, "invalid api key"))
  controller = _controller(channel, executor)

  result = await controller.run_full_workflow(PATTERN)

  assert result.success is True
  assert result.warnings and "Etsy listing generation failed" in result.warnings[0]
  listing = result.results[STEP_ETSY_LISTING]
  assert listing.success is False
  assert listing.recoverable is False
  assert listing.error_code == ErrorCode.API_ERROR.value


@pytest.mark.anyio
async def test_optimizer_provider_failure_is_recoverable_and_fatal_to_the_run(executor) -> None:
  channel = _FailingStepChannel("optimize this knitting pattern", ProviderError(ErrorKind.RATE_LIMIT, "429"))
  controller = _controller(channel, executor, max_retries=2)

  result = await controller.run_full_workflow(PATTERN)

  assert result.success is False
  step = result.results[STEP_PATTERN_OPTIMIZATION]
  assert step.recoverable is True
  assert step.error_code == ErrorCode.API_RATE_LIMIT.value
  assert len(channel.calls) == 3


@pytest.mark.anyio
async def test_too_short_optimization_is_rejected(executor) -> None:
  class _TerseChannel(MockCompletionChannel):
    async def complete(self, request: CompletionRequest) -> str:
      return "ok"

  result = await _controller(_TerseChannel(), executor).run_step(STEP_PATTERN_OPTIMIZATION, PATTERN)

  assert result.success is False
  assert result.recoverable is True
  assert result.error_code == ErrorCode.INVALID_API_RESPONSE.value


@pytest.mark.anyio
async def test_run_step_validates_inputs(executor) -> None:
  controller = _controller(MockCompletionChannel(), executor)

  not_text = await controller.run_step(STEP_PATTERN_OPTIMIZATION, 42)
  missing_field = await controller.run_step(STEP_PDF_GENERATION, {"pattern": PATTERN})
  wrong_shape = await controller.run_step(STEP_ETSY_LISTING, "plain text")

  assert not_text.error_code == ErrorCode.INVALID_INPUT.value
  assert missing_field.error_code == ErrorCode.MISSING_REQUIRED_FIELD.value
  assert wrong_shape.error_code == ErrorCode.INVALID_INPUT.value
  assert all(item.recoverable is False for item in (not_text, missing_field, wrong_shape))


@pytest.mark.anyio
async def test_listing_step_accepts_optimized_pattern_only(executor) -> None:
  result = await _controller(MockCompletionChannel(), executor).run_step(STEP_ETSY_LISTING, {"optimizedPattern": MOCK_OPTIMIZED_PATTERN}, {"tags": ["beanie"]})
  assert result.success is True
  assert result.payload["tags"] == MOCK_LISTING["tags"]


@pytest.mark.anyio
async def test_unknown_step_raises(executor) -> None:
  with pytest.raises(ValueError, match="Invalid step name"):
    await _controller(MockCompletionChannel(), executor).run_step("shipping_labels", PATTERN)


@pytest.mark.anyio
async def test_state_snapshot_and_reset_keep_the_workflow_id(executor) -> None:
  controller = _controller(MockCompletionChannel(), executor)
  await controller.run_step(STEP_PATTERN_OPTIMIZATION, PATTERN)

  state = controller.get_state()
  assert state.workflow_id == controller.workflow_id
  assert list(state.results) == [STEP_PATTERN_OPTIMIZATION]

  controller.reset()

  after = controller.get_state()
  assert after.workflow_id == state.workflow_id
  assert after.results == {}


def test_controller_requires_every_step() -> None:
  with pytest.raises(ValueError, match="Missing agents"):
    WorkflowController({})
