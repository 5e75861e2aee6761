"""Lenient JSON parsing helpers for LLM outputs."""

from __future__ import annotations

import json
import re
from typing import Any

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?|\n?```\s*$")


def strip_json_fences(raw: str) -> str:
  """Remove a surrounding markdown code fence."""
  return _FENCE_RE.sub("", raw.strip()).strip()


def parse_json_with_fallback(raw: str) -> Any:
  """Parse JSON, recovering from fences, surrounding prose and trailing commas."""
  cleaned = strip_json_fences(raw)

  # Prefer strict parsing so valid JSON is preserved without mutation.
  try:
    return json.loads(cleaned)
  except json.JSONDecodeError as exc:
    last_error = exc

  # Extract the first JSON object/array to ignore leading or trailing text.
  candidate = _extract_json_block(cleaned)
  if candidate is None:
    raise last_error

  for attempt in (candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)):
    try:
      return json.loads(attempt)
    except json.JSONDecodeError as exc:
      last_error = exc

  raise last_error


def _extract_json_block(raw: str) -> str | None:
  """Locate the first balanced JSON object/array, honoring string escapes."""
  start_index: int | None = None
  depth = 0
  in_string = False
  escape = False

  for index, char in enumerate(raw):
    if start_index is None:
      if char in "{[":
        start_index = index
        depth = 1
      continue

    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char in "{[":
      depth += 1
    elif char in "}]":
      depth -= 1
      if depth == 0:
        return raw[start_index : index + 1]

  return None
