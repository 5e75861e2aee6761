"""Helpers for base64 data URLs carrying images."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)
DEFAULT_MIME_TYPE = "image/jpeg"


class InvalidImagePayload(ValueError):
  """Raised when an image payload cannot be decoded."""


@dataclass(frozen=True)
class ImagePayload:
  """Decoded image bytes with their MIME type."""

  data: bytes
  mime_type: str

  def to_data_url(self) -> str:
    return build_data_url(self.data, self.mime_type)


def build_data_url(data: bytes, mime_type: str) -> str:
  return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _decode_base64(raw: str) -> bytes:
  compact = "".join(raw.split())
  try:
    return base64.b64decode(compact, validate=True)
  except (binascii.Error, ValueError) as exc:
    raise InvalidImagePayload("Image data is not valid base64") from exc


def parse_image_payload(image: str | bytes | ImagePayload) -> ImagePayload:
  """Decode a data URL, raw base64 string, or raw bytes into an ImagePayload.

  Raw base64 without an envelope is assumed to be JPEG.
  """
  if isinstance(image, ImagePayload):
    return image
  if isinstance(image, (bytes, bytearray)):
    if not image:
      raise InvalidImagePayload("Image data is empty")
    return ImagePayload(bytes(image), DEFAULT_MIME_TYPE)

  text = image.strip()
  if not text:
    raise InvalidImagePayload("Image data is empty")

  if text.startswith("data:"):
    match = _DATA_URL_RE.match(text)
    if match is None:
      raise InvalidImagePayload("Invalid data URL format")
    mime_type, encoded = match.group(1).strip().lower(), match.group(2)
    if not mime_type.startswith("image/"):
      raise InvalidImagePayload(f"Unsupported MIME type '{mime_type}'")
    data = _decode_base64(encoded)
  else:
    mime_type = DEFAULT_MIME_TYPE
    data = _decode_base64(text)

  if not data:
    raise InvalidImagePayload("Image data is empty")
  return ImagePayload(data, mime_type)
