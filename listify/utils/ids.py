"""Identifier utilities."""

from __future__ import annotations

import secrets
import string
import time
import uuid


def generate_request_id() -> str:
  """Return a new request identifier."""
  return str(uuid.uuid4())


def generate_nanoid(size: int = 16) -> str:
  """Return a short non-sequential id suitable for public references."""
  alphabet = string.ascii_lowercase + string.digits
  return "".join(secrets.choice(alphabet) for _ in range(size))


def generate_workflow_id() -> str:
  """Return a workflow run identifier of the form wf_<epoch ms>_<suffix>."""
  return f"wf_{int(time.time() * 1000)}_{generate_nanoid(9)}"
