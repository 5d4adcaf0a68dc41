"""
HTTP fetching module for the crawler.
Issues GET requests with retry/backoff and deadline-aware timeouts.
"""

import time

import requests

from ragcrawler.core import (
    CONNECT_TIMEOUT,
    MAX_FETCH_ATTEMPTS,
    REQUEST_TIMEOUT,
    READ_CHUNK_SIZE,
    RETRY_BACKOFF_STEP,
    RETRYABLE_STATUS_CODES,
    FetchError,
    logger,
)
from ragcrawler.models import FetchResponse


def decode_body(response, content: bytes) -> str:
    """Decode with the declared charset, else best-effort UTF-8."""
    content_type = response.headers.get("Content-Type", "")
    if "charset=" in content_type.lower() and response.encoding:
        try:
            return content.decode(response.encoding, errors="replace")
        except LookupError:
            pass
    return content.decode("utf-8", errors="replace")


class HttpFetcher:
    """
    FLOW: Checks cancellation and deadline -> Executes GET with the crawler User-Agent,
    following redirects -> Retries transport errors and 502/503/504 with linear backoff ->
    Streams the body, aborting once the deadline passes -> Returns FetchResponse for any other outcome.

    The read timeout bounds each socket read, not the whole transfer; the
    overall deadline is enforced between body chunks.
    """

    def __init__(self, user_agent, deadline, cancelled, session=None):
        self.user_agent = user_agent
        self.deadline = deadline  # time.monotonic() value
        self.cancelled = cancelled
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def _remaining(self):
        return self.deadline - time.monotonic()

    def fetch(self, url) -> FetchResponse:
        last_error = None
        last_status = None
        attempt = 0
        while attempt < MAX_FETCH_ATTEMPTS and not self.cancelled.is_set():
            attempt += 1
            remaining = self._remaining()
            if remaining <= 0:
                self.cancelled.set()
                break
            timeout = (CONNECT_TIMEOUT, min(remaining, REQUEST_TIMEOUT))

            try:
                r = self.session.get(url, timeout=timeout, allow_redirects=True, stream=True)
            except requests.exceptions.RequestException as e:
                last_error = e
                logger.warning(f"[RETRY {attempt}/{MAX_FETCH_ATTEMPTS}] HTTP attempt failed for {url}: {e}")
                self._backoff(attempt)
                continue

            if r.status_code in RETRYABLE_STATUS_CODES:
                last_status = r.status_code
                r.close()
                logger.warning(f"[RETRY {attempt}/{MAX_FETCH_ATTEMPTS}] {r.status_code} for {url}")
                self._backoff(attempt)
                continue

            try:
                content = self._read_body(r, url)
            except requests.exceptions.RequestException as e:
                last_error = e
                logger.warning(f"[RETRY {attempt}/{MAX_FETCH_ATTEMPTS}] Body read failed for {url}: {e}")
                self._backoff(attempt)
                continue

            return FetchResponse(
                requested_url=url,
                effective_url=r.url or url,
                status_code=r.status_code,
                content_type=r.headers.get("Content-Type", ""),
                body=decode_body(r, content),
            )

        if last_error is not None:
            raise FetchError(f"Fetch failed for {url} after {attempt} attempts: {last_error}") from last_error
        if last_status is not None and attempt >= MAX_FETCH_ATTEMPTS:
            raise FetchError(f"Retries exhausted for {url}: last status {last_status}")
        raise FetchError(f"Cancelled or deadline exceeded before successful fetch: {url}")

    def _read_body(self, r, url) -> bytes:
        chunks = []
        try:
            for chunk in r.iter_content(chunk_size=READ_CHUNK_SIZE):
                if self._remaining() <= 0:
                    self.cancelled.set()
                    raise FetchError(f"Deadline exceeded while reading {url}")
                chunks.append(chunk)
        finally:
            r.close()
        return b"".join(chunks)

    def _backoff(self, attempt):
        if attempt >= MAX_FETCH_ATTEMPTS:
            return
        # Wakes early if the run is cancelled
        if self.cancelled.wait(RETRY_BACKOFF_STEP * attempt):
            logger.info("Fetch backoff interrupted by cancellation")

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()