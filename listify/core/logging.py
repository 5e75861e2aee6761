import logging
import logging.handlers
import sys
import time
from pathlib import Path
from types import TracebackType

from listify.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FORMATTER = logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT)
MAX_MESSAGE_CHARS = 4000

# Provider SDKs log full request payloads at DEBUG, which includes base64 images.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "google_genai", "PIL")

# Track logging state
_LOG_FILE_PATH: Path | None = None
_LOGGING_INITIALIZED = False


class TruncatedFormatter(logging.Formatter):
  """Formatter that truncates long messages and stack traces."""

  def format(self, record: logging.LogRecord) -> str:
    formatted = super().format(record)
    if len(formatted) > MAX_MESSAGE_CHARS:
      return f"{formatted[:MAX_MESSAGE_CHARS]}...(truncated {len(formatted) - MAX_MESSAGE_CHARS} chars)"
    return formatted

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    import traceback

    lines = traceback.format_exception(*ei)
    # Keep header + last 5 lines of traceback
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def _build_handlers(settings: Settings) -> tuple[logging.Handler, logging.Handler, Path]:
  """Create console and rotating file handlers."""
  log_dir = Path(settings.log_dir)
  if not log_dir.is_absolute():
    log_dir = Path(__file__).resolve().parents[2] / log_dir
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"listify_{time.strftime('%Y%m%d_%H%M%S')}.log"
  try:
    # Touch early so the file exists even if handlers have not flushed yet.
    log_path.touch(exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log file at {log_path}: {exc}") from exc

  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))

  file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)

  # Name backups app.log-1 instead of app.log.1
  def custom_namer(default_name: str) -> str:
    parts = default_name.rsplit(".", 1)
    if len(parts) == 2 and parts[1].isdigit():
      return f"{parts[0]}-{parts[1]}"
    return default_name

  file_handler.namer = custom_namer
  file_handler.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return stream, file_handler, log_path


def setup_logging(settings: Settings) -> Path:
  """Ensure all loggers use our handlers and propagate to root."""
  stream_handler, file_handler, log_path = _build_handlers(settings)
  for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
    log = logging.getLogger(logger_name)
    log.handlers = [stream_handler, file_handler]
    log.propagate = False

  level = logging.DEBUG if settings.debug else logging.INFO
  logging.basicConfig(level=level, handlers=[stream_handler, file_handler], force=True)
  for logger_name in _NOISY_LOGGERS:
    logging.getLogger(logger_name).setLevel(logging.WARNING)

  if not log_path.exists():
    raise RuntimeError(f"Logging initialization failed; log file missing at {log_path}")
  return log_path


def _initialize_logging(settings: Settings) -> None:
  """Initialize logging and log startup messages."""
  global _LOG_FILE_PATH, _LOGGING_INITIALIZED
  logger = logging.getLogger("listify.core.logging")
  if _LOGGING_INITIALIZED:
    return
  log_path = setup_logging(settings)
  _LOG_FILE_PATH = log_path
  _LOGGING_INITIALIZED = True
  logger.info("Logging initialized. Writing to %s", _LOG_FILE_PATH)
  logger.info("Mock mode=%s image_transport=%s cache=%s/%s", settings.mock_mode, settings.image_transport, settings.cache_backend, settings.cache_eviction)
