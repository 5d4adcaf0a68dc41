"""
Thread-safe crawl state for the web crawler.
Holds the queue of URLs to crawl, the visited set and the emitted-chunk fingerprints.
Ensures no URL is dispatched twice and no chunk is written twice.
"""

import os
from queue import Empty, Queue
from threading import Lock
from typing import Optional

import psutil

from ragcrawler.models import FrontierTask


class UrlFrontier:
    """
    Unbounded FIFO of FrontierTask.
    offer() never blocks; poll() returns immediately with a task or None.
    """

    def __init__(self):
        self.queue = Queue(maxsize=0)

    def offer(self, task: FrontierTask) -> None:
        self.queue.put_nowait(task)

    def poll(self) -> Optional[FrontierTask]:
        try:
            return self.queue.get_nowait()
        except Empty:
            return None

    def size(self) -> int:
        return self.queue.qsize()


class VisitedUrlStore:
    """Add-only set of normalized URLs already dispatched."""

    def __init__(self):
        self.visited = set()
        self.lock = Lock()

    def mark_visited(self, normalized_url: str) -> bool:
        """
        Mark the URL as visited.
        Returns True only for the call that added it.
        """
        with self.lock:
            if normalized_url in self.visited:
                return False
            self.visited.add(normalized_url)
            return True

    def __len__(self):
        with self.lock:
            return len(self.visited)


class ContentDeduplicator:
    """Add-only set of chunk fingerprints already emitted."""

    def __init__(self):
        self.hashes = set()
        self.lock = Lock()

    def is_duplicate(self, chunk_hash: str) -> bool:
        with self.lock:
            if chunk_hash in self.hashes:
                return True
            self.hashes.add(chunk_hash)
            return False

    def __len__(self):
        with self.lock:
            return len(self.hashes)


def get_memory_stats(frontier: UrlFrontier, visited: VisitedUrlStore, deduplicator: ContentDeduplicator):
    """
    Return memory stats for the crawl state structures.
    """
    process = psutil.Process(os.getpid())
    total_memory = process.memory_info().rss / 1024 / 1024  # MB
    # Approximate memory per structure (rough estimates)
    queue_memory = frontier.size() * 0.1  # ~100 bytes per task
    visited_memory = len(visited) * 0.05  # ~50 bytes per URL string
    hashes_memory = len(deduplicator) * 0.05
    return {
        'total_process_memory_mb': total_memory,
        'frontier_memory_mb': queue_memory + visited_memory + hashes_memory,
        'queue_memory_mb': queue_memory,
        'visited_memory_mb': visited_memory,
        'hashes_memory_mb': hashes_memory,
    }
