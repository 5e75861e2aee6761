import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Launch the API under uvicorn."""
  host = os.getenv("LISTIFY_HOST", "0.0.0.0")
  port = os.getenv("LISTIFY_PORT", "8002")
  logger.info("Starting listify engine on %s:%s", host, port)
  # Replace the current process so uvicorn receives SIGTERM directly.
  args = ["uvicorn", "listify.main:app", "--host", host, "--port", port, "--no-server-header"]
  os.execvp("uvicorn", args)


if __name__ == "__main__":
  main()
