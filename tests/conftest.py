"""Shared fixtures for the Listify test suite."""

from __future__ import annotations

from dataclasses import replace

import pytest

from listify.ai.backoff import RetryExecutor
from listify.config import Settings, get_settings
from tests.fakes import RecordingSleep


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def recording_sleep() -> RecordingSleep:
  return RecordingSleep()


@pytest.fixture
def executor(recording_sleep: RecordingSleep) -> RetryExecutor:
  """Retry executor whose backoff waits are recorded instead of slept."""
  return RetryExecutor(sleep=recording_sleep)


@pytest.fixture
def test_settings() -> Settings:
  return replace(get_settings(), api_tokens=("test-token",), mock_mode=False, prompt_enhancement_enabled=False)


@pytest.fixture
def auth_headers() -> dict[str, str]:
  return {"Authorization": "Bearer test-token"}
