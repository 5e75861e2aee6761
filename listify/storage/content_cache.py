"""Content-addressed cache for generated artifacts."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from listify.utils.data_url import ImagePayload, parse_image_payload

logger = logging.getLogger(__name__)

EVICTION_NONE = "none"
EVICTION_TTL = "ttl"
EVICTION_LRU = "lru"


def fingerprint(image: str | bytes | ImagePayload, prompt: str) -> str:
  """Return the SHA-256 cache key for an (image, prompt) pair.

  Data URLs and base64 strings are decoded first so the key depends only on
  the image bytes and the literal prompt.
  """
  payload = parse_image_payload(image)
  digest = hashlib.sha256()
  # Length prefix keeps the image/prompt boundary unambiguous.
  digest.update(len(payload.data).to_bytes(8, "big"))
  digest.update(payload.data)
  digest.update(prompt.encode("utf-8"))
  return digest.hexdigest()


@dataclass(frozen=True)
class CacheEntry:
  """Artifact stored under a cache key."""

  key: str
  artifact: str
  stored_at: float


@dataclass(frozen=True)
class EvictionPolicy:
  """Eviction settings: none, ttl (needs ttl_seconds) or lru (needs max_entries)."""

  mode: str = EVICTION_NONE
  ttl_seconds: int | None = None
  max_entries: int | None = None

  def __post_init__(self) -> None:
    if self.mode not in {EVICTION_NONE, EVICTION_TTL, EVICTION_LRU}:
      raise ValueError(f"Unsupported eviction mode '{self.mode}'.")
    if self.mode == EVICTION_TTL and not self.ttl_seconds:
      raise ValueError("TTL eviction requires ttl_seconds.")
    if self.mode == EVICTION_LRU and not self.max_entries:
      raise ValueError("LRU eviction requires max_entries.")

  def is_expired(self, entry: CacheEntry, now: float) -> bool:
    return self.mode == EVICTION_TTL and self.ttl_seconds is not None and now - entry.stored_at >= self.ttl_seconds


class ContentCache(Protocol):
  """Key-value store for generated artifacts."""

  async def get(self, key: str) -> str | None:
    """Return the stored artifact or None on a miss."""

  async def set(self, key: str, artifact: str) -> None:
    """Store an artifact under a key."""

  async def delete(self, key: str) -> None:
    """Remove a key if present."""

  async def clear(self) -> None:
    """Remove every entry."""


class InMemoryContentCache:
  """Process-local cache guarded by a lock so concurrent callers see consistent entries."""

  def __init__(self, policy: EvictionPolicy | None = None, *, clock: Callable[[], float] = time.time) -> None:
    self.policy = policy or EvictionPolicy()
    self._clock = clock
    self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
    self._lock = threading.Lock()

  def __len__(self) -> int:
    return len(self._entries)

  async def get(self, key: str) -> str | None:
    with self._lock:
      entry = self._entries.get(key)
      if entry is None:
        return None
      if self.policy.is_expired(entry, self._clock()):
        del self._entries[key]
        logger.debug("Cache entry expired key=%s", key[:12])
        return None
      if self.policy.mode == EVICTION_LRU:
        self._entries.move_to_end(key)
      return entry.artifact

  async def set(self, key: str, artifact: str) -> None:
    with self._lock:
      self._entries[key] = CacheEntry(key=key, artifact=artifact, stored_at=self._clock())
      self._entries.move_to_end(key)
      if self.policy.mode == EVICTION_LRU and self.policy.max_entries is not None:
        while len(self._entries) > self.policy.max_entries:
          evicted, _ = self._entries.popitem(last=False)
          logger.debug("Cache evicted key=%s", evicted[:12])

  async def delete(self, key: str) -> None:
    with self._lock:
      self._entries.pop(key, None)

  async def clear(self) -> None:
    with self._lock:
      self._entries.clear()


class FileContentCache:
  """Directory-backed cache writing one JSON document per key, surviving restarts.

  LRU recency is tracked through file modification times.
  """

  def __init__(self, directory: str | Path, policy: EvictionPolicy | None = None, *, clock: Callable[[], float] = time.time) -> None:
    self.directory = Path(directory)
    self.policy = policy or EvictionPolicy()
    self._clock = clock
    self._lock = threading.Lock()
    self.directory.mkdir(parents=True, exist_ok=True)

  def _path_for(self, key: str) -> Path:
    if not key or not all(char in "0123456789abcdef" for char in key):
      raise ValueError("Cache keys must be lowercase hex digests.")
    return self.directory / f"{key}.json"

  def _read(self, key: str) -> str | None:
    path = self._path_for(key)
    with self._lock:
      try:
        document = json.loads(path.read_text(encoding="utf-8"))
        artifact = document["artifact"]
        if not isinstance(artifact, str):
          raise TypeError(f"artifact is {type(artifact).__name__}, expected str")
        entry = CacheEntry(key=key, artifact=artifact, stored_at=float(document["stored_at"]))
      except FileNotFoundError:
        return None
      except (OSError, KeyError, TypeError, ValueError) as exc:
        # JSONDecodeError is a ValueError.
        logger.warning("Discarding unreadable cache file %s: %s", path, exc)
        path.unlink(missing_ok=True)
        return None

      now = self._clock()
      if self.policy.is_expired(entry, now):
        path.unlink(missing_ok=True)
        return None
      if self.policy.mode == EVICTION_LRU:
        os.utime(path, (now, now))
      return entry.artifact

  def _write(self, key: str, artifact: str) -> None:
    path = self._path_for(key)
    stored_at = self._clock()
    document = {"key": key, "artifact": artifact, "stored_at": stored_at}
    with self._lock:
      # Write to a temp file then rename so readers never see partial JSON.
      fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
      try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
          json.dump(document, handle)
        os.replace(tmp_name, path)
        os.utime(path, (stored_at, stored_at))
      except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
      if self.policy.mode == EVICTION_LRU and self.policy.max_entries is not None:
        self._evict_oldest(self.policy.max_entries)

  def _evict_oldest(self, max_entries: int) -> None:
    files = sorted(self.directory.glob("*.json"), key=lambda item: item.stat().st_mtime)
    for stale in files[: max(len(files) - max_entries, 0)]:
      stale.unlink(missing_ok=True)

  def _delete(self, key: str) -> None:
    with self._lock:
      self._path_for(key).unlink(missing_ok=True)

  def _clear(self) -> None:
    with self._lock:
      for path in self.directory.glob("*.json"):
        path.unlink(missing_ok=True)

  async def get(self, key: str) -> str | None:
    return await run_in_threadpool(self._read, key)

  async def set(self, key: str, artifact: str) -> None:
    await run_in_threadpool(self._write, key, artifact)

  async def delete(self, key: str) -> None:
    await run_in_threadpool(self._delete, key)

  async def clear(self) -> None:
    await run_in_threadpool(self._clear)


def build_content_cache(*, backend: str, directory: str | None, policy: EvictionPolicy) -> ContentCache:
  """Create the configured cache backend."""
  if backend == "file":
    if not directory:
      raise ValueError("A cache directory is required for the file backend.")
    return FileContentCache(directory, policy)
  return InMemoryContentCache(policy)
