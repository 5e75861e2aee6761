from __future__ import annotations

import base64

import pytest

from listify.storage.content_cache import EvictionPolicy, FileContentCache, InMemoryContentCache, build_content_cache, fingerprint
from listify.utils.data_url import ImagePayload
from tests.fakes import FakeClock, make_image_bytes, to_data_url


def test_fingerprint_depends_only_on_bytes_and_prompt() -> None:
  data = make_image_bytes(32, 32)
  as_data_url = to_data_url(data)
  as_raw_base64 = base64.b64encode(data).decode("ascii")

  key = fingerprint(as_data_url, "Remove the background")

  assert key == fingerprint(as_raw_base64, "Remove the background")
  assert key == fingerprint(data, "Remove the background")
  assert key == fingerprint(ImagePayload(data, "image/webp"), "Remove the background")
  assert len(key) == 64


def test_fingerprint_changes_with_prompt_or_image() -> None:
  data = make_image_bytes(32, 32)
  key = fingerprint(data, "Brighten")
  assert key != fingerprint(data, "Brighten ")
  assert key != fingerprint(make_image_bytes(32, 32, color=(0, 0, 0)), "Brighten")


def test_fingerprint_boundary_is_unambiguous() -> None:
  assert fingerprint(b"ab", "c") != fingerprint(b"a", "bc")


def test_eviction_policy_validation() -> None:
  with pytest.raises(ValueError):
    EvictionPolicy(mode="ttl")
  with pytest.raises(ValueError):
    EvictionPolicy(mode="lru")
  with pytest.raises(ValueError):
    EvictionPolicy(mode="fifo")


@pytest.mark.anyio
async def test_memory_cache_without_eviction_keeps_everything() -> None:
  cache = InMemoryContentCache()
  for index in range(50):
    await cache.set(f"{index:064x}", f"artifact-{index}")

  assert len(cache) == 50
  assert await cache.get(f"{0:064x}") == "artifact-0"
  assert await cache.get("f" * 64) is None


@pytest.mark.anyio
async def test_memory_cache_ttl_expires_entries() -> None:
  clock = FakeClock()
  cache = InMemoryContentCache(EvictionPolicy(mode="ttl", ttl_seconds=60), clock=clock)
  await cache.set("a" * 64, "first")

  clock.advance(59)
  assert await cache.get("a" * 64) == "first"
  clock.advance(1)
  assert await cache.get("a" * 64) is None
  assert len(cache) == 0


@pytest.mark.anyio
async def test_memory_cache_lru_evicts_least_recently_used() -> None:
  cache = InMemoryContentCache(EvictionPolicy(mode="lru", max_entries=2))
  await cache.set("a" * 64, "a")
  await cache.set("b" * 64, "b")
  assert await cache.get("a" * 64) == "a"

  await cache.set("c" * 64, "c")

  assert await cache.get("b" * 64) is None
  assert await cache.get("a" * 64) == "a"
  assert await cache.get("c" * 64) == "c"


@pytest.mark.anyio
async def test_memory_cache_delete_and_clear() -> None:
  cache = InMemoryContentCache()
  await cache.set("a" * 64, "a")
  await cache.set("b" * 64, "b")
  await cache.delete("a" * 64)
  assert await cache.get("a" * 64) is None
  await cache.clear()
  assert len(cache) == 0


@pytest.mark.anyio
async def test_file_cache_survives_new_instance(tmp_path) -> None:
  key = fingerprint(make_image_bytes(16, 16), "Add a shadow")
  await FileContentCache(tmp_path).set(key, "data:image/png;base64,AAAA")

  reopened = FileContentCache(tmp_path)
  assert await reopened.get(key) == "data:image/png;base64,AAAA"
  assert list(tmp_path.glob(".tmp-*")) == []


@pytest.mark.anyio
async def test_file_cache_ttl(tmp_path) -> None:
  clock = FakeClock()
  cache = FileContentCache(tmp_path, EvictionPolicy(mode="ttl", ttl_seconds=10), clock=clock)
  await cache.set("a" * 64, "artifact")

  clock.advance(11)

  assert await cache.get("a" * 64) is None
  assert not (tmp_path / f"{'a' * 64}.json").exists()


@pytest.mark.anyio
async def test_file_cache_lru_uses_access_time(tmp_path) -> None:
  clock = FakeClock()
  cache = FileContentCache(tmp_path, EvictionPolicy(mode="lru", max_entries=2), clock=clock)
  await cache.set("a" * 64, "a")
  clock.advance(5)
  await cache.set("b" * 64, "b")
  clock.advance(5)
  assert await cache.get("a" * 64) == "a"
  clock.advance(5)

  await cache.set("c" * 64, "c")

  assert await cache.get("b" * 64) is None
  assert await cache.get("a" * 64) == "a"
  assert await cache.get("c" * 64) == "c"


@pytest.mark.anyio
async def test_file_cache_discards_corrupt_documents(tmp_path) -> None:
  cache = FileContentCache(tmp_path)
  (tmp_path / f"{'d' * 64}.json").write_text("{not json", encoding="utf-8")

  assert await cache.get("d" * 64) is None
  assert not (tmp_path / f"{'d' * 64}.json").exists()


@pytest.mark.anyio
@pytest.mark.parametrize("document", ['{"key": "x"}', "[1, 2]", '"just a string"', '{"artifact": 5, "stored_at": 1}', '{"artifact": "data:,", "stored_at": "yesterday"}'])
async def test_file_cache_discards_documents_with_the_wrong_shape(tmp_path, document: str) -> None:
  cache = FileContentCache(tmp_path)
  path = tmp_path / f"{'e' * 64}.json"
  path.write_text(document, encoding="utf-8")

  assert await cache.get("e" * 64) is None
  assert not path.exists()


@pytest.mark.anyio
async def test_file_cache_rejects_non_hex_keys(tmp_path) -> None:
  cache = FileContentCache(tmp_path)
  with pytest.raises(ValueError):
    await cache.get("../escape")


def test_build_content_cache_requires_directory_for_file_backend() -> None:
  with pytest.raises(ValueError):
    build_content_cache(backend="file", directory=None, policy=EvictionPolicy())
  assert isinstance(build_content_cache(backend="memory", directory=None, policy=EvictionPolicy()), InMemoryContentCache)
