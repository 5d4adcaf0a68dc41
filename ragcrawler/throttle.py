import threading
import time
from urllib.parse import urlsplit

from ragcrawler.core import logger
from ragcrawler.normalizer import effective_port


class _HostState:
    def __init__(self, concurrency):
        self.semaphore = threading.BoundedSemaphore(concurrency)
        self.lock = threading.Lock()
        self.last_start = None  # monotonic seconds of the last admitted start


class PerHostScheduler:
    """
    FLOW: Resolves host key (scheme, host, port) -> Acquires one of the host's permits ->
    Checks cancellation and deadline -> Reserves the next start slot under the host lock ->
    Sleeps until the slot -> Releases the permit.

    The delay is served while holding a permit, so at most per_host_concurrency
    requests can be waiting out the gap on one host at a time.
    """

    def __init__(self, per_host_concurrency, min_delay_ms, deadline, cancelled):
        self.per_host_concurrency = per_host_concurrency
        self.min_delay = min_delay_ms / 1000.0
        self.deadline = deadline  # time.monotonic() value
        self.cancelled = cancelled  # threading.Event shared by the run
        self.hosts = {}
        self.hosts_lock = threading.Lock()

    @staticmethod
    def host_key(url):
        parts = urlsplit(url)
        scheme = (parts.scheme or "").lower()
        host = (parts.hostname or "").lower()
        return f"{scheme}://{host}:{effective_port(parts)}"

    def _state_for(self, key):
        with self.hosts_lock:
            state = self.hosts.get(key)
            if state is None:
                state = _HostState(self.per_host_concurrency)
                self.hosts[key] = state
            return state

    def before_request(self, url) -> bool:
        """
        Block until a request to url may start.
        Returns False if the run is cancelled or past its deadline.
        """
        if self.cancelled.is_set():
            return False
        state = self._state_for(self.host_key(url))
        with state.semaphore:
            if self.cancelled.is_set() or time.monotonic() >= self.deadline:
                self.cancelled.set()
                return False
            with state.lock:
                now = time.monotonic()
                slot = now
                if state.last_start is not None:
                    slot = max(now, state.last_start + self.min_delay)
                state.last_start = slot
            wait = slot - time.monotonic()
            if wait > 0:
                logger.debug(f"[THROTTLE] Waiting {wait:.3f}s before {url}")
                if self.cancelled.wait(wait):
                    return False
            return True
