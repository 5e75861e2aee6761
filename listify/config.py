"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_DEFAULT_ENV_FILE = Path(__file__).resolve().parents[1] / ".env"


def load_environment() -> bool:
  """Load the .env file named by LISTIFY_ENV_FILE (default: repo root) without overriding real variables."""
  return load_dotenv(os.getenv("LISTIFY_ENV_FILE") or _DEFAULT_ENV_FILE, override=False)


load_environment()

_CACHE_BACKENDS = {"memory", "file"}
_CACHE_EVICTIONS = {"none", "ttl", "lru"}
_IMAGE_TRANSPORTS = {"sdk", "http"}
_OUTPUT_FORMATS = {"png", "jpeg", "webp"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Listify service."""

  allowed_origins: tuple[str, ...]
  debug: bool
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  api_tokens: tuple[str, ...]
  mock_mode: bool
  gemini_api_key: str | None
  gemini_model: str
  gemini_base_url: str
  image_transport: str
  image_max_retries: int
  image_retry_delay_ms: int
  image_timeout_seconds: float
  image_min_width: int
  image_workers: int
  output_width: int
  output_height: int
  output_format: str
  output_quality: int
  deepseek_api_key: str | None
  deepseek_api_url: str
  deepseek_model: str
  deepseek_max_tokens: int
  deepseek_max_retries: int
  deepseek_retry_delay_ms: int
  deepseek_timeout_ms: int
  deepseek_rate_limit: float
  completion_proxy_url: str | None
  completion_proxy_token: str | None
  prompt_enhancement_enabled: bool
  prompt_enhancement_timeout_seconds: float
  cache_backend: str
  cache_dir: str | None
  cache_eviction: str
  cache_ttl_seconds: int | None
  cache_max_entries: int | None


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:5173",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("LISTIFY_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("LISTIFY_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_tokens(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()
  return tuple(token.strip() for token in raw.split(",") if token.strip())


def _parse_bool(raw: str | None, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_int(name: str, default: int, *, minimum: int = 1) -> int:
  raw = os.getenv(name)
  if raw is None or raw.strip() == "":
    return default

  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer.") from exc

  if value < minimum:
    raise ValueError(f"{name} must be at least {minimum}.")

  return value


def _parse_float(name: str, default: float) -> float:
  raw = os.getenv(name)
  if raw is None or raw.strip() == "":
    return default

  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc

  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")

  return value


def _parse_choice(name: str, default: str, choices: set[str]) -> str:
  value = (os.getenv(name) or default).strip().lower()
  if value not in choices:
    raise ValueError(f"{name} must be one of {', '.join(sorted(choices))}.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("LISTIFY_DEBUG"))

  log_max_bytes = _parse_int("LISTIFY_LOG_MAX_BYTES", 5242880)  # 5MB default
  log_backup_count = _parse_int("LISTIFY_LOG_BACKUP_COUNT", 10, minimum=0)

  cache_backend = _parse_choice("LISTIFY_CACHE_BACKEND", "memory", _CACHE_BACKENDS)
  cache_dir = _optional_str(os.getenv("LISTIFY_CACHE_DIR"))
  if cache_backend == "file" and not cache_dir:
    raise ValueError("LISTIFY_CACHE_DIR must be set when LISTIFY_CACHE_BACKEND is 'file'.")

  # Eviction is opt-in; entries stay valid indefinitely unless a policy is chosen.
  cache_eviction = _parse_choice("LISTIFY_CACHE_EVICTION", "none", _CACHE_EVICTIONS)
  cache_ttl_seconds = _parse_optional_int("LISTIFY_CACHE_TTL_SECONDS")
  cache_max_entries = _parse_optional_int("LISTIFY_CACHE_MAX_ENTRIES")
  if cache_eviction == "ttl" and cache_ttl_seconds is None:
    raise ValueError("LISTIFY_CACHE_TTL_SECONDS must be set when LISTIFY_CACHE_EVICTION is 'ttl'.")

  if cache_eviction == "lru" and cache_max_entries is None:
    raise ValueError("LISTIFY_CACHE_MAX_ENTRIES must be set when LISTIFY_CACHE_EVICTION is 'lru'.")

  output_quality = _parse_int("LISTIFY_OUTPUT_QUALITY", 90)
  if output_quality > 100:
    raise ValueError("LISTIFY_OUTPUT_QUALITY must be between 1 and 100.")

  return Settings(
    allowed_origins=_parse_origins(os.getenv("LISTIFY_ALLOWED_ORIGINS")),
    debug=debug,
    log_dir=(os.getenv("LISTIFY_LOG_DIR") or "logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("LISTIFY_LOG_HTTP_4XX")),
    api_tokens=_parse_tokens(os.getenv("LISTIFY_API_TOKENS")),
    mock_mode=_parse_bool(os.getenv("ENABLE_MOCK_MODE")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=(os.getenv("GEMINI_MODEL") or "gemini-2.0-flash-exp-image-generation").strip(),
    gemini_base_url=(os.getenv("GEMINI_BASE_URL") or "https://generativelanguage.googleapis.com/v1beta").strip().rstrip("/"),
    image_transport=_parse_choice("LISTIFY_IMAGE_TRANSPORT", "sdk", _IMAGE_TRANSPORTS),
    image_max_retries=_parse_int("LISTIFY_IMAGE_MAX_RETRIES", 2, minimum=0),
    image_retry_delay_ms=_parse_int("LISTIFY_IMAGE_RETRY_DELAY", 1000, minimum=0),
    image_timeout_seconds=_parse_float("LISTIFY_IMAGE_TIMEOUT", 180.0),
    image_min_width=_parse_int("LISTIFY_IMAGE_MIN_WIDTH", 500),
    image_workers=_parse_int("LISTIFY_IMAGE_WORKERS", 2),
    output_width=_parse_int("LISTIFY_OUTPUT_WIDTH", 1200),
    output_height=_parse_int("LISTIFY_OUTPUT_HEIGHT", 1200),
    output_format=_parse_choice("LISTIFY_OUTPUT_FORMAT", "png", _OUTPUT_FORMATS),
    output_quality=output_quality,
    deepseek_api_key=_optional_str(os.getenv("DEEPSEEK_API_KEY")),
    deepseek_api_url=(os.getenv("DEEPSEEK_API_URL") or "https://api.deepseek.com/v1").strip().rstrip("/"),
    deepseek_model=(os.getenv("DEEPSEEK_MODEL") or "deepseek-chat").strip(),
    deepseek_max_tokens=_parse_int("DEEPSEEK_MAX_TOKENS", 4096),
    deepseek_max_retries=_parse_int("DEEPSEEK_MAX_RETRIES", 5, minimum=0),
    deepseek_retry_delay_ms=_parse_int("DEEPSEEK_RETRY_DELAY", 3000, minimum=0),
    deepseek_timeout_ms=_parse_int("DEEPSEEK_TIMEOUT", 60000),
    deepseek_rate_limit=_parse_float("DEEPSEEK_RATE_LIMIT", 5.0),
    completion_proxy_url=_optional_str(os.getenv("LISTIFY_COMPLETION_PROXY_URL")),
    completion_proxy_token=_optional_str(os.getenv("LISTIFY_COMPLETION_PROXY_TOKEN")),
    prompt_enhancement_enabled=_parse_bool(os.getenv("LISTIFY_PROMPT_ENHANCEMENT"), default=True),
    prompt_enhancement_timeout_seconds=_parse_float("LISTIFY_PROMPT_ENHANCEMENT_TIMEOUT", 10.0),
    cache_backend=cache_backend,
    cache_dir=cache_dir,
    cache_eviction=cache_eviction,
    cache_ttl_seconds=cache_ttl_seconds,
    cache_max_entries=cache_max_entries,
  )


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_optional_int(name: str) -> int | None:
  raw = os.getenv(name)
  if raw is None or raw.strip() == "":
    return None

  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer.") from exc

  if value <= 0:
    raise ValueError(f"{name} must be positive when provided.")

  return value
