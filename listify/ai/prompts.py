"""Prompt templates for image edits, prompt enhancement and the listing workflow."""

from __future__ import annotations

import json
from typing import Any

BASE_IMAGE_PROMPT = (
  "You are a professional e-commerce product photo editor. Edit the supplied product photo so it is ready for an online "
  "marketplace listing. Keep the product itself unchanged: same shape, proportions, colors, text and details. Improve lighting, "
  "sharpness and background so the product is the clear focal point. Return the edited image."
)

GENERIC_CATEGORY_PROMPT = "Present the product clearly with balanced lighting and a clean, uncluttered background."

CATEGORY_PROMPTS: dict[str, str] = {
  "jewelry": "Bring out the sparkle of metal and stones. Keep gemstones crisp and vivid and keep metal tones accurate.",
  "clothing": "Use natural-looking light that shows fabric texture and pattern. Keep garment colors true.",
  "decor": "Favor symmetry and a clean background. Show material texture and decorative detail.",
  "art": "Keep the artwork's colors faithful. Avoid glare and shadows across the piece.",
  "crafts": "Show fine detail and workmanship. Keep scale and texture readable.",
  "accessories": "Show how the item is used while keeping it attractive. Light it so details and materials stand out.",
}

PLATFORM_PROMPTS: dict[str, str] = {
  "etsy": "Style it for Etsy: warm, handmade feel with soft natural light.",
  "amazon": "Style it for Amazon: pure white background with the product filling most of the frame.",
  "ebay": "Style it for eBay: neutral background with the whole item visible and in focus.",
}

SIMPLIFIED_IMAGE_PROMPT = (
  "Enhance this product image with professional lighting and a clean background. Keep the product's original details and colors "
  "while improving overall image quality."
)

ENHANCER_SYSTEM_PROMPT = """You are an e-commerce product photographer who specializes in {category} products sold on {platform}.
Rewrite the user's image editing request into a better instruction for an AI image editor.

Add concrete direction on lighting, background, composition, style and mood where the request leaves them open.

Rules:
- Keep the user's intent and the product type.
- Improve how the product is photographed, never the product itself.
- Do not invent creative elements the user did not ask for.
- Keep it under 100 words.

Reply with the rewritten instruction only."""

TEXT_SYSTEM_PROMPT = "You are an expert knitting pattern editor and Etsy copywriter. Follow the requested output format exactly."

OPTIMIZE_PATTERN_PROMPT = "Please optimize this knitting pattern for clarity and technical accuracy:\n\n{pattern}"

FORMAT_PDF_PROMPT = (
  "Please format this knitting pattern for PDF as markdown. Start with a '# ' title and use '## ' sections for Overview, "
  "Materials, Skill Level, Instructions, Notes and Finishing.\n\n{pattern}"
)

LISTING_SYSTEM_PROMPT = (
  "You write Etsy listings for knitting patterns. Respond with a JSON object with the keys "
  '"title" (string), "description" (string), "tags" (array of up to 13 short strings) and "altTexts" (array of strings). '
  "Respond with JSON only."
)

LISTING_USER_PROMPT = "Create an Etsy listing for this knitting pattern:\n\nTitle: {title}\n\nPattern Information:\n{pattern_json}\n\nAdditional Tags: {tags}"


def category_prompt(category: str | None) -> str:
  """Return the category addition, or the generic default for unknown categories."""
  key = (category or "").strip().lower()
  return CATEGORY_PROMPTS.get(key, GENERIC_CATEGORY_PROMPT)


def platform_prompt(platform: str | None) -> str:
  return PLATFORM_PROMPTS.get((platform or "").strip().lower(), "")


def build_primary_image_prompt(final_prompt: str, *, category: str | None, platform: str | None) -> str:
  sections = [BASE_IMAGE_PROMPT, category_prompt(category)]
  platform_text = platform_prompt(platform)
  if platform_text:
    sections.append(platform_text)
  return "\n\n".join(sections) + f"\n\nEdit this image by: {final_prompt}"


def build_simplified_image_prompt(final_prompt: str) -> str:
  return f"{SIMPLIFIED_IMAGE_PROMPT}\n\nEdit this image by: {final_prompt}"


def build_explicit_image_prompt(final_prompt: str) -> str:
  return f"Generate a new version of this image with {final_prompt}. The output MUST be an image."


def build_enhancer_system_prompt(category: str | None, platform: str | None) -> str:
  return ENHANCER_SYSTEM_PROMPT.format(category=category or "general", platform=platform or "ecommerce")


def build_listing_prompt(structured_pattern: dict[str, Any], *, title: str | None, tags: list[str] | None) -> str:
  resolved_title = title or structured_pattern.get("title") or "Knitting Pattern"
  return LISTING_USER_PROMPT.format(title=resolved_title, pattern_json=json.dumps(structured_pattern, indent=2, ensure_ascii=False), tags=", ".join(tags or []) or "none")
