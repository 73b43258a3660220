import os
import sys

from dotenv import load_dotenv
from loguru import logger

from .errors import MissingConfigError

load_dotenv(override=True)


class Config:
    """Simple configuration holder that reads from environment variables.

    Values are read once at import time; tests override them with monkeypatch.
    """

    # Word-vector table (GloVe text format). No default: the file is large and local.
    EMBEDDINGS_PATH = os.getenv("QUIVER_EMBEDDINGS_PATH")
    DATA_FILE = os.getenv("QUIVER_DATA_FILE", "vectors.json")

    DEFAULT_TOP_K = int(os.getenv("QUIVER_DEFAULT_TOP_K", "5"))
    TEXT_TOP_K = int(os.getenv("QUIVER_TEXT_TOP_K", "10"))
    MAX_TOP_K = int(os.getenv("QUIVER_MAX_TOP_K", "100"))

    HOST = os.getenv("QUIVER_HOST", "127.0.0.1")
    PORT = int(os.getenv("QUIVER_PORT", "8080"))
    LOG_LEVEL = os.getenv("QUIVER_LOG_LEVEL", "INFO").upper()

    @classmethod
    def require_embeddings_path(cls) -> str:
        if not cls.EMBEDDINGS_PATH:
            raise MissingConfigError(
                "QUIVER_EMBEDDINGS_PATH is required. Point it at a GloVe-format "
                "word-vector file (e.g. glove.6B.50d.txt) in your .env file."
            )
        return cls.EMBEDDINGS_PATH


def configure_logging(level: str | None = None) -> None:
    """Route loguru output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=level or Config.LOG_LEVEL)
