"""Pillow-based measurement and re-encoding of generated images, run off the event loop."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import anyio
from anyio import to_thread
from PIL import Image, ImageOps

from listify.ai.pipeline.contracts import OutputOptions

logger = logging.getLogger(__name__)

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}
_MIME_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


@dataclass(frozen=True)
class ProcessedImage:
  data: bytes
  mime_type: str


def _measure(data: bytes) -> tuple[int, int]:
  with Image.open(io.BytesIO(data)) as image:
    return image.size


def _render(data: bytes, options: OutputOptions) -> ProcessedImage:
  with Image.open(io.BytesIO(data)) as source:
    source.load()
    image = ImageOps.exif_transpose(source).convert("RGBA")

  # Fit inside the target box without cropping, centered on a transparent canvas.
  fitted = ImageOps.contain(image, (options.width, options.height), method=Image.Resampling.LANCZOS)
  canvas = Image.new("RGBA", (options.width, options.height), (255, 255, 255, 0))
  canvas.paste(fitted, ((options.width - fitted.width) // 2, (options.height - fitted.height) // 2), fitted)

  buffer = io.BytesIO()
  if options.format == "jpeg":
    # JPEG has no alpha channel; flatten onto white.
    flattened = Image.new("RGB", canvas.size, (255, 255, 255))
    flattened.paste(canvas, mask=canvas.getchannel("A"))
    flattened.save(buffer, format="JPEG", quality=options.quality, optimize=True)
  elif options.format == "png":
    canvas.save(buffer, format="PNG", compress_level=min(options.quality // 10, 9))
  else:
    canvas.save(buffer, format=_PIL_FORMATS[options.format], quality=options.quality)
  return ProcessedImage(buffer.getvalue(), _MIME_TYPES[options.format])


class ImagePostProcessor:
  """Runs Pillow work in worker threads bounded by a capacity limiter."""

  def __init__(self, max_workers: int = 2) -> None:
    self.max_workers = max_workers
    self._limiter: anyio.CapacityLimiter | None = None

  def _get_limiter(self) -> anyio.CapacityLimiter:
    # Created lazily so it binds to the running event loop.
    if self._limiter is None:
      self._limiter = anyio.CapacityLimiter(self.max_workers)
    return self._limiter

  async def measure(self, data: bytes) -> tuple[int, int]:
    """Return (width, height) of an encoded image."""
    return await to_thread.run_sync(_measure, data, limiter=self._get_limiter())

  async def process(self, data: bytes, options: OutputOptions) -> ProcessedImage:
    """Resize into the output box and re-encode."""
    processed = await to_thread.run_sync(_render, data, options, limiter=self._get_limiter())
    logger.debug("Post-processed image to %dx%d %s (%d bytes)", options.width, options.height, options.format, len(processed.data))
    return processed
