"""Client-side token bucket rate limiter."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import anyio

logger = logging.getLogger(__name__)


class TokenBucket:
  """Best-effort limiter allowing `rate` requests per second with bursts up to `capacity`.

  Instances are injected into the channels that share a quota; there is no
  module-level state.
  """

  def __init__(self, rate: float, capacity: float = 1.0, *, clock: Callable[[], float] = time.monotonic, sleep: Callable[[float], Awaitable[Any]] = anyio.sleep) -> None:
    if rate <= 0:
      raise ValueError("rate must be positive.")
    if capacity < 1:
      raise ValueError("capacity must be at least 1.")
    self.rate = rate
    self.capacity = capacity
    self._clock = clock
    self._sleep = sleep
    self._tokens = capacity
    self._updated_at = clock()

  def _refill(self) -> None:
    now = self._clock()
    elapsed = max(now - self._updated_at, 0.0)
    self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
    self._updated_at = now

  def try_acquire(self) -> bool:
    """Take a token if one is available without waiting."""
    self._refill()
    if self._tokens >= 1:
      self._tokens -= 1
      return True
    return False

  async def acquire(self) -> float:
    """Wait until a token is available and return the time spent waiting."""
    waited = 0.0
    while not self.try_acquire():
      wait = (1 - self._tokens) / self.rate
      logger.debug("Rate limit reached; waiting %.3fs", wait)
      await self._sleep(wait)
      waited += wait
    return waited
