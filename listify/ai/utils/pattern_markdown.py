from __future__ import annotations

import re
from typing import Any

_BULLET_RE = re.compile(r"^[*\-•]\s+")
_HEADING_RE = re.compile(r"^#+\s*")
_SKILL_RE = re.compile(r"skill level:?\s*([a-zA-Z][a-zA-Z -]*)", re.IGNORECASE)

# Checked in order; the first keyword hit wins.
_SECTION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
  ("title", ("title", "overview")),
  ("materials", ("material", "tool")),
  ("skill_level", ("skill", "level")),
  ("instructions", ("pattern", "instruction", "sleeve")),
  ("notes", ("note", "tip")),
  ("assembly", ("assembly", "finishing")),
  ("ignore", ("abbreviation", "copyright")),
)


def _section_for(heading: str) -> str:
  lowered = heading.lower()
  for section, keywords in _SECTION_KEYWORDS:
    if any(keyword in lowered for keyword in keywords):
      return section
  return ""


def markdown_to_pattern(markdown: str) -> dict[str, Any]:
  """Split a markdown knitting pattern into title, summary, materials, skill level, instructions, notes and assembly.

  Sections are recognized from `## ` headings. A leading `# ` heading is
  used as the title when no title section provides one.
  """
  result: dict[str, Any] = {"title": "", "summary": "", "materials": [], "skillLevel": "", "instructions": [], "notes": [], "assembly": []}
  summary_lines: list[str] = []
  current = ""

  for raw_line in markdown.splitlines():
    line = raw_line.strip()
    if not line:
      continue

    if line.startswith("## "):
      current = _section_for(line[3:])
      continue

    if line.startswith("# ") and not result["title"]:
      result["title"] = line[2:].strip()
      continue

    if current == "title":
      if not result["title"]:
        result["title"] = _HEADING_RE.sub("", line).strip()
      else:
        summary_lines.append(line)
    elif current == "skill_level":
      match = _SKILL_RE.search(line)
      if match and not result["skillLevel"]:
        result["skillLevel"] = match.group(1).strip()
      elif not result["skillLevel"]:
        result["skillLevel"] = _BULLET_RE.sub("", line).strip()
    elif current in {"materials", "instructions", "notes", "assembly"}:
      result[current].append(_BULLET_RE.sub("", line).strip())

  result["summary"] = " ".join(summary_lines)
  return result
