"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: CrawlConfig, CrawlerError, FetchError, setup_logger, CompanyFormatter
"""

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

load_dotenv()

DEFAULT_USER_AGENT = os.getenv("RAGCRAWLER_USER_AGENT", "rag-webcrawler/0.1")
DEFAULT_PER_HOST_CONCURRENCY = int(os.getenv("RAGCRAWLER_PER_HOST_CONCURRENCY", 4))
DEFAULT_PER_HOST_MIN_DELAY_MS = int(os.getenv("RAGCRAWLER_PER_HOST_MIN_DELAY_MS", 250))
DEFAULT_MAX_TIME_SECONDS = int(os.getenv("RAGCRAWLER_MAX_TIME_SECONDS", 20))

# Network timeouts (seconds)
CONNECT_TIMEOUT = 5
REQUEST_TIMEOUT = 10

# Fetch retry policy
MAX_FETCH_ATTEMPTS = 3
RETRY_BACKOFF_STEP = 0.2
RETRYABLE_STATUS_CODES = (502, 503, 504)

# Chunk capacity in characters for text chunks
CHUNK_MAX_CHARS = 1500

# Body read size per chunk (bytes); the deadline is checked between chunks
READ_CHUNK_SIZE = 64 * 1024

# Dispatch loop sleep while waiting on in-flight pages (seconds)
DISPATCH_POLL_INTERVAL = 0.05


class CrawlerError(Exception):
    """Base class for crawler failures."""


class FetchError(CrawlerError):
    """Raised when a URL could not be fetched within the retry budget."""


@dataclass(frozen=True)
class CrawlConfig:
    """
    Immutable crawl configuration.
    Validated on construction so that no crawling starts with bad limits.
    """
    root_url: str
    max_time_seconds: float
    max_pages: Optional[int] = None
    max_depth: Optional[int] = None
    per_host_concurrency: int = DEFAULT_PER_HOST_CONCURRENCY
    per_host_min_delay_ms: int = DEFAULT_PER_HOST_MIN_DELAY_MS
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        if not self.root_url:
            raise ValueError("root_url must not be empty")
        parts = urlsplit(self.root_url)
        if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
            raise ValueError(f"root_url must be an absolute http(s) URL: {self.root_url}")
        if self.max_time_seconds is None or self.max_time_seconds <= 0:
            raise ValueError("max_time_seconds must be positive")
        if self.max_pages is not None and self.max_pages <= 0:
            raise ValueError("max_pages must be > 0")
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.per_host_concurrency <= 0:
            raise ValueError("per_host_concurrency must be > 0")
        if self.per_host_min_delay_ms < 0:
            raise ValueError("per_host_min_delay_ms must be >= 0")
        if self.user_agent is None or not self.user_agent.strip():
            raise ValueError("user_agent must not be blank")


# === LOGGING SECTION ===

class CompanyFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats according to company standard
    (e.g., [ Tue Jan 06 05:32:41 AM UTC 2026 ]) -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logger(name="ragcrawler", log_file=None, level=logging.INFO):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with CompanyFormatter.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if name != "ragcrawler":
        logger.propagate = True
        setup_logger("ragcrawler", log_file=log_file, level=level)
        return logger

    formatter = CompanyFormatter()

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # Only the root 'ragcrawler' logger gets a FileHandler
    if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Global logger instance
logger = setup_logger()
