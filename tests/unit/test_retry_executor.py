from __future__ import annotations

import anyio
import httpx
import pytest

from listify.ai.backoff import FatalFailure, RetryableFailure, RetryError, RetryExecutor, RetryPolicy, Success
from listify.ai.errors import ErrorKind, ProviderError


class _Counter:
  def __init__(self, *outcomes: object) -> None:
    self.outcomes = list(outcomes)
    self.calls = 0

  async def __call__(self) -> object:
    self.calls += 1
    item = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
    if isinstance(item, BaseException):
      raise item
    return item


@pytest.mark.anyio
async def test_returns_value_after_transient_failures(executor, recording_sleep) -> None:
  operation = _Counter(RetryableFailure(ErrorKind.TIMEOUT, "slow"), RetryableFailure(ErrorKind.SERVER_ERROR, "503"), Success("done"))

  result = await executor.execute(operation, policy=RetryPolicy(max_retries=3, initial_delay=1.0))

  assert result == "done"
  assert operation.calls == 3
  assert recording_sleep.delays == [1.0, 1.5]


@pytest.mark.anyio
async def test_plain_return_values_count_as_success(executor) -> None:
  operation = _Counter("hello")
  assert await executor.execute(operation, max_retries=2, initial_delay_ms=10) == "hello"
  assert operation.calls == 1


@pytest.mark.anyio
async def test_exhaustion_runs_exactly_max_retries_plus_one_attempts(executor) -> None:
  operation = _Counter(RetryableFailure(ErrorKind.MISSING_PAYLOAD, "no image"))

  with pytest.raises(RetryError) as excinfo:
    await executor.execute(operation, max_retries=3, initial_delay_ms=100)

  assert operation.calls == 4
  assert excinfo.value.exhausted is True
  assert excinfo.value.attempt_count == 4
  assert excinfo.value.kind == ErrorKind.MISSING_PAYLOAD
  assert str(excinfo.value).startswith("Failed after 4 attempts")


@pytest.mark.anyio
async def test_zero_retries_means_single_attempt(executor, recording_sleep) -> None:
  operation = _Counter(RetryableFailure(ErrorKind.TIMEOUT, "slow"))

  with pytest.raises(RetryError):
    await executor.execute(operation, policy=RetryPolicy(max_retries=0))

  assert operation.calls == 1
  assert recording_sleep.delays == []


@pytest.mark.anyio
async def test_fatal_failure_stops_immediately(executor, recording_sleep) -> None:
  operation = _Counter(FatalFailure(ErrorKind.POLICY_BLOCKED, "blocked"))

  with pytest.raises(RetryError) as excinfo:
    await executor.execute(operation, policy=RetryPolicy(max_retries=5))

  assert operation.calls == 1
  assert excinfo.value.exhausted is False
  assert excinfo.value.kind == ErrorKind.POLICY_BLOCKED
  assert recording_sleep.delays == []


@pytest.mark.anyio
async def test_raised_exceptions_are_classified(executor) -> None:
  request = httpx.Request("POST", "https://llm.test/v1/chat/completions")
  operation = _Counter(httpx.ReadTimeout("read timed out", request=request), ProviderError(ErrorKind.AUTH, "bad key"))

  with pytest.raises(RetryError) as excinfo:
    await executor.execute(operation, policy=RetryPolicy(max_retries=4))

  # Timeout retried once, then the auth error ends the run.
  assert operation.calls == 2
  assert excinfo.value.kind == ErrorKind.AUTH
  assert excinfo.value.attempts[0].failure.kind == ErrorKind.TIMEOUT


@pytest.mark.anyio
async def test_delays_grow_geometrically_and_are_capped(executor, recording_sleep) -> None:
  operation = _Counter(RetryableFailure(ErrorKind.SERVER_ERROR, "503"))

  with pytest.raises(RetryError):
    await executor.execute(operation, policy=RetryPolicy(max_retries=4, initial_delay=20.0))

  assert recording_sleep.delays == [20.0, 30.0, 30.0, 30.0]
  assert recording_sleep.delays == sorted(recording_sleep.delays)


@pytest.mark.anyio
async def test_retry_after_overrides_computed_delay(executor, recording_sleep) -> None:
  operation = _Counter(RetryableFailure(ErrorKind.RATE_LIMIT, "429", retry_after=7.0), Success("ok"))

  assert await executor.execute(operation, policy=RetryPolicy(max_retries=2, initial_delay=1.0)) == "ok"
  assert recording_sleep.delays == [7.0]


def test_network_failures_escalate_one_step_when_enabled() -> None:
  network = RetryableFailure(ErrorKind.NETWORK, "dns")
  timeout = RetryableFailure(ErrorKind.TIMEOUT, "slow")
  plain = RetryPolicy(initial_delay=2.0)
  escalating = RetryPolicy(initial_delay=2.0, escalate_network=True)

  assert plain.delay_for(1, network) == 2.0
  assert escalating.delay_for(1, network) == 3.0
  assert escalating.delay_for(2, network) == 4.5
  assert escalating.delay_for(1, timeout) == 2.0


def test_policy_from_ms_converts_delay() -> None:
  policy = RetryPolicy.from_ms(5, 3000)
  assert policy.max_retries == 5
  assert policy.initial_delay == 3.0
  assert policy.factor == 1.5


@pytest.mark.anyio
async def test_negative_retry_budget_is_rejected(executor) -> None:
  with pytest.raises(ValueError):
    await executor.execute(_Counter("x"), max_retries=-1)


@pytest.mark.anyio
async def test_cancellation_interrupts_pending_backoff() -> None:
  operation = _Counter(RetryableFailure(ErrorKind.TIMEOUT, "slow"))
  executor = RetryExecutor()

  with anyio.move_on_after(0.05) as scope:
    await executor.execute(operation, policy=RetryPolicy(max_retries=3, initial_delay=10.0))

  assert scope.cancelled_caught
  assert operation.calls == 1
