"""Bounded retry with exponential backoff for provider calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

import anyio

from listify.ai.errors import NETWORK_KINDS, RETRYABLE_KINDS, ErrorKind, classify_exception

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success(Generic[T]):
  """Operation outcome carrying a value."""

  value: T


@dataclass(frozen=True)
class RetryableFailure:
  """Operation outcome that should be attempted again."""

  kind: ErrorKind
  message: str
  retry_after: float | None = None


@dataclass(frozen=True)
class FatalFailure:
  """Operation outcome that must not be attempted again."""

  kind: ErrorKind
  message: str


Failure = Union[RetryableFailure, FatalFailure]
Outcome = Union[Success[T], RetryableFailure, FatalFailure]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
  """Backoff settings for one retry executor invocation."""

  max_retries: int = 3
  initial_delay: float = 1.0
  factor: float = 1.5
  max_delay: float = 30.0
  escalate_network: bool = False

  @classmethod
  def from_ms(cls, max_retries: int, initial_delay_ms: int, **kwargs: Any) -> RetryPolicy:
    return cls(max_retries=max_retries, initial_delay=initial_delay_ms / 1000, **kwargs)

  def delay_for(self, retry_number: int, failure: RetryableFailure) -> float:
    """Return the wait before retry number `retry_number` (1-based)."""
    if failure.retry_after is not None:
      return failure.retry_after
    exponent = retry_number - 1
    # Network-class failures wait one step longer than generic ones.
    if self.escalate_network and failure.kind in NETWORK_KINDS:
      exponent = retry_number
    return min(self.initial_delay * (self.factor**exponent), self.max_delay)


@dataclass
class RetryAttempt:
  """One attempt inside a retry executor invocation."""

  attempt_number: int
  started_at: float
  failure: Failure | None = None
  delay: float | None = None


class RetryError(RuntimeError):
  """Raised once an operation failed fatally or ran out of retries."""

  def __init__(self, message: str, *, kind: ErrorKind, attempts: list[RetryAttempt], exhausted: bool) -> None:
    super().__init__(message)
    self.kind = kind
    self.attempts = attempts
    self.exhausted = exhausted

  @property
  def attempt_count(self) -> int:
    return len(self.attempts)

  @property
  def retryable(self) -> bool:
    return self.kind in RETRYABLE_KINDS


def _to_outcome(value: Any) -> Outcome[Any]:
  if isinstance(value, (Success, RetryableFailure, FatalFailure)):
    return value
  return Success(value)


def failure_from_exception(exc: Exception) -> Failure:
  """Classify a raised exception into an explicit failure outcome."""
  error = classify_exception(exc)
  if error.retryable:
    return RetryableFailure(error.kind, str(error), error.retry_after)
  return FatalFailure(error.kind, str(error))


@dataclass
class RetryExecutor:
  """Run async operations with bounded retries.

  The operation returns either a plain value, a `Success`, or an explicit
  `RetryableFailure`/`FatalFailure`. Raised exceptions are classified with
  `classify_exception`. Cancellation is never caught, so cancelling the
  surrounding task stops any pending retry.
  """

  sleep: Sleep = field(default=anyio.sleep)
  clock: Callable[[], float] = field(default=time.monotonic)

  async def execute(self, operation: Callable[[], Awaitable[Any]], max_retries: int | None = None, initial_delay_ms: int | None = None, *, policy: RetryPolicy | None = None, label: str = "operation") -> Any:
    """Run `operation` up to `max_retries + 1` times and return its value."""
    policy = policy or RetryPolicy()
    if max_retries is not None or initial_delay_ms is not None:
      policy = RetryPolicy(
        max_retries=policy.max_retries if max_retries is None else max_retries,
        initial_delay=policy.initial_delay if initial_delay_ms is None else initial_delay_ms / 1000,
        factor=policy.factor,
        max_delay=policy.max_delay,
        escalate_network=policy.escalate_network,
      )
    if policy.max_retries < 0:
      raise ValueError("max_retries must be zero or positive.")

    attempts: list[RetryAttempt] = []
    total_attempts = policy.max_retries + 1
    for attempt_number in range(1, total_attempts + 1):
      attempt = RetryAttempt(attempt_number=attempt_number, started_at=self.clock())
      attempts.append(attempt)
      try:
        outcome = _to_outcome(await operation())
      except Exception as exc:  # noqa: BLE001
        outcome = failure_from_exception(exc)

      if isinstance(outcome, Success):
        if attempt_number > 1:
          logger.info("%s succeeded on attempt %d/%d", label, attempt_number, total_attempts)
        return outcome.value

      attempt.failure = outcome
      if isinstance(outcome, FatalFailure):
        logger.warning("%s failed with non-retryable %s error: %s", label, outcome.kind.value, outcome.message)
        raise RetryError(outcome.message, kind=outcome.kind, attempts=attempts, exhausted=False)

      if attempt_number == total_attempts:
        break

      delay = policy.delay_for(attempt_number, outcome)
      attempt.delay = delay
      logger.warning("%s attempt %d/%d failed (%s): %s. Retrying in %.2fs", label, attempt_number, total_attempts, outcome.kind.value, outcome.message, delay)
      await self.sleep(delay)

    last = attempts[-1].failure
    assert last is not None
    logger.error("%s failed after %d attempts: %s", label, len(attempts), last.message)
    raise RetryError(f"Failed after {len(attempts)} attempts: {last.message}", kind=last.kind, attempts=attempts, exhausted=True)
