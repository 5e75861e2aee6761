"""Parse listing completions into title, description, tags and alt texts."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from listify.ai.json_parser import parse_json_with_fallback

logger = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"^\s*(?:\*\*)?(title|description|tags|alt\s*texts?)(?:\*\*)?\s*:(?:\*\*)?\s*(.*)$", re.IGNORECASE)
_LIST_SPLIT_RE = re.compile(r",|\n")
_BULLET_RE = re.compile(r"^\s*(?:[*\-•]|\d+[.)])\s*")


def _as_list(value: Any) -> list[str]:
  if value is None:
    return []
  if isinstance(value, str):
    items = _LIST_SPLIT_RE.split(value)
  elif isinstance(value, list):
    items = [str(item) for item in value]
  else:
    return []
  return [cleaned for cleaned in (_BULLET_RE.sub("", item).strip().strip('"') for item in items) if cleaned]


def _normalize(document: dict[str, Any]) -> dict[str, Any]:
  alt_texts = document.get("altTexts", document.get("alt_texts", document.get("altText")))
  return {
    "title": str(document.get("title") or "").strip(),
    "description": str(document.get("description") or "").strip(),
    "tags": _as_list(document.get("tags")),
    "altTexts": _as_list(alt_texts),
  }


def _parse_labelled_sections(text: str) -> dict[str, Any]:
  sections: dict[str, list[str]] = {}
  current: str | None = None
  for line in text.splitlines():
    match = _LABEL_RE.match(line)
    if match:
      label = match.group(1).lower().replace(" ", "")
      current = "altTexts" if label.startswith("alt") else label
      sections[current] = [match.group(2)] if match.group(2).strip() else []
      continue
    if current is not None:
      sections[current].append(line)

  return _normalize(
    {
      "title": " ".join(part.strip() for part in sections.get("title", []) if part.strip()),
      "description": "\n".join(sections.get("description", [])).strip(),
      "tags": "\n".join(sections.get("tags", [])),
      "altTexts": "\n".join(sections.get("altTexts", [])),
    }
  )


def parse_listing(text: str) -> dict[str, Any]:
  """Parse a listing from JSON (fenced or not), falling back to `Title:`/`Description:` style sections."""
  try:
    parsed = parse_json_with_fallback(text)
  except json.JSONDecodeError:
    parsed = None

  if isinstance(parsed, dict):
    return _normalize(parsed)

  logger.info("Listing response was not JSON; parsing labelled sections")
  return _parse_labelled_sections(text)
