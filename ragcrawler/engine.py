"""
FILE DESCRIPTION: Crawl orchestration managing the dispatch loop, per-page threads and run lifecycle.
KEY FUNCTIONS/CLASSES: Crawler, PageCrawlTask, CrawlStats
"""

import threading
import time
from collections import defaultdict
from pathlib import Path

from ragcrawler.chunker import ContentChunker
from ragcrawler.core import DISPATCH_POLL_INTERVAL, logger
from ragcrawler.extractor import ContentExtractor
from ragcrawler.fetcher import HttpFetcher
from ragcrawler.frontier import ContentDeduplicator, UrlFrontier, VisitedUrlStore, get_memory_stats
from ragcrawler.models import FrontierTask
from ragcrawler.normalizer import UrlNormalizer
from ragcrawler.parser import HtmlParser
from ragcrawler.policy import RobotsCache, RobotsPolicy
from ragcrawler.storage import JsonlChunkWriter
from ragcrawler.throttle import PerHostScheduler


# === RUN STATISTICS ===

class CrawlStats:
    """Counters shared by all page threads of one run."""

    def __init__(self):
        self.lock = threading.Lock()
        self.pages_crawled = 0
        self.chunks_written = 0
        self.duplicate_chunks = 0
        self.robots_denied = 0
        self.skipped = 0
        self.failed = 0
        self.failure_reasons = defaultdict(int)

    def claim_page(self, max_pages):
        """
        Count one crawled page.
        Returns its 1-based index, or None if the page budget is already spent.
        """
        with self.lock:
            if max_pages is not None and self.pages_crawled >= max_pages:
                return None
            self.pages_crawled += 1
            return self.pages_crawled

    def increment(self, name, amount=1):
        with self.lock:
            setattr(self, name, getattr(self, name) + amount)

    def record_failure(self, reason):
        with self.lock:
            self.failed += 1
            self.failure_reasons[reason] += 1

    def as_dict(self):
        with self.lock:
            return {
                "pages_crawled": self.pages_crawled,
                "chunks_written": self.chunks_written,
                "duplicate_chunks": self.duplicate_chunks,
                "robots_denied": self.robots_denied,
                "skipped": self.skipped,
                "failed": self.failed,
                "failure_reasons": dict(self.failure_reasons),
            }


# === PAGE TASK ===

class PageCrawlTask(threading.Thread):
    """
    FLOW: Robots check -> Per-host admission -> Fetch -> Parse/Extract/Chunk ->
    Dedup and write chunks -> Normalize outbound links -> Re-enqueue same-host links within depth.
    Any exception ends this page only.
    """

    def __init__(self, crawler, task: FrontierTask, name):
        super().__init__(name=name, daemon=True)
        self.crawler = crawler
        self.task = task

    def log(self, level, msg):
        getattr(logger, level)(msg, extra={'context': self.name})

    def run(self):
        try:
            self.process()
        except Exception as e:
            self.crawler.stats.record_failure(type(e).__name__)
            self.log("warning", f"Error while crawling {self.task.normalized_url}: {e}")
        finally:
            self.crawler.task_done()

    def process(self):
        c = self.crawler
        url = self.task.normalized_url
        max_pages = c.config.max_pages
        max_depth = c.config.max_depth

        if c.cancelled.is_set():
            return
        if time.monotonic() >= c.deadline:
            c.cancelled.set()
            return

        if not c.robots_policy.is_allowed(url):
            c.stats.increment("robots_denied")
            self.log("info", f"Disallowed by robots.txt: {url}")
            return

        if not c.scheduler.before_request(url):
            return

        response = c.fetcher.fetch(url)
        if not response.is_success_html():
            c.stats.increment("skipped")
            self.log("info", f"Skipped {url}: status={response.status_code} content-type={response.content_type!r}")
            return

        page_index = c.stats.claim_page(max_pages)
        if page_index is None:
            return

        document = c.html_parser.parse(response.body, url)
        doc = c.extractor.extract(document, url, response.effective_url, self.task.depth)
        chunks = c.chunker.chunk(doc)
        written = 0
        for chunk in chunks:
            if c.deduplicator.is_duplicate(chunk.chunk_hash):
                c.stats.increment("duplicate_chunks")
                continue
            c.writer.write_chunk(chunk)
            written += 1
        c.stats.increment("chunks_written", written)
        self.log("info", f"Crawled {url} (depth={self.task.depth}, page={page_index}, chunks={written})")

        if max_pages is not None and page_index >= max_pages:
            self.log("info", f"Reached maxPages {max_pages}; cancelling crawl")
            c.cancelled.set()

        next_depth = self.task.depth + 1
        for link in c.html_parser.extract_links(response.body, url):
            if c.cancelled.is_set():
                break
            normalized = c.normalizer.normalize_if_same_host(link)
            if normalized is None:
                continue
            if max_depth is not None and next_depth > max_depth:
                continue
            c.frontier.offer(FrontierTask(normalized, next_depth))


# === CRAWLER ===

class Crawler:
    """
    FLOW: Seeds the frontier with the normalized root -> Dispatch loop polls the frontier,
    skips out-of-depth and already-visited URLs, and starts one PageCrawlTask thread per URL ->
    Stops on deadline, page budget, or exhausted frontier -> Waits for in-flight pages
    (bounded by the deadline) -> Logs and returns CrawlStats.
    """

    def __init__(self, config, output_path, fetcher_factory=HttpFetcher):
        self.config = config
        self.output_path = Path(output_path)
        self.fetcher_factory = fetcher_factory

        self.normalizer = UrlNormalizer(config.root_url)
        self.frontier = UrlFrontier()
        self.visited = VisitedUrlStore()
        self.deduplicator = ContentDeduplicator()
        self.html_parser = HtmlParser()
        self.extractor = ContentExtractor()
        self.chunker = ContentChunker()
        self.stats = CrawlStats()
        self.cancelled = threading.Event()

        self.in_flight = 0
        self.in_flight_lock = threading.Lock()
        self.deadline = None
        self.fetcher = None
        self.scheduler = None
        self.robots_policy = None
        self.writer = None

    def task_done(self):
        with self.in_flight_lock:
            self.in_flight -= 1

    def _in_flight_count(self):
        with self.in_flight_lock:
            return self.in_flight

    def run(self) -> CrawlStats:
        config = self.config
        start = time.monotonic()
        self.deadline = start + config.max_time_seconds

        if self.output_path.parent and not self.output_path.parent.exists():
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

        self.fetcher = self.fetcher_factory(config.user_agent, self.deadline, self.cancelled)
        self.scheduler = PerHostScheduler(
            config.per_host_concurrency,
            config.per_host_min_delay_ms,
            self.deadline,
            self.cancelled,
        )
        self.robots_policy = RobotsPolicy(RobotsCache(self.fetcher, config.user_agent))

        logger.info(
            f"Starting crawl: root={config.root_url} maxTime={config.max_time_seconds}s "
            f"maxPages={config.max_pages} maxDepth={config.max_depth}"
        )

        try:
            with JsonlChunkWriter(self.output_path) as writer:
                self.writer = writer
                self.frontier.offer(FrontierTask(self.normalizer.normalize(config.root_url), 0))
                try:
                    self._dispatch_loop()
                except KeyboardInterrupt:
                    logger.warning("Interrupted; cancelling crawl")
                    self.cancelled.set()
                except Exception:
                    logger.exception("Dispatch loop failed; cancelling crawl")
                    self.cancelled.set()
                    raise
                finally:
                    # In-flight pages must finish before the writer closes
                    self._await_in_flight()
        finally:
            close = getattr(self.fetcher, "close", None)
            if close is not None:
                close()

        duration = time.monotonic() - start
        summary = self.stats.as_dict()
        logger.info(f"Crawl finished: pagesCrawled={summary['pages_crawled']} in {duration:.2f}s")
        logger.info(f"Crawl stats: {summary}")
        memory = get_memory_stats(self.frontier, self.visited, self.deduplicator)
        logger.info(
            f"Memory: process={memory['total_process_memory_mb']:.1f}MB "
            f"crawl_state~{memory['frontier_memory_mb']:.3f}MB"
        )
        return self.stats

    def _dispatch_loop(self):
        config = self.config
        page_seq = 0
        while not self.cancelled.is_set():
            if time.monotonic() >= self.deadline:
                logger.info("Global deadline reached; stopping crawl loop")
                self.cancelled.set()
                break
            if config.max_pages is not None and self.stats.pages_crawled >= config.max_pages:
                logger.info(f"Reached maxPages {config.max_pages}; stopping crawl loop")
                self.cancelled.set()
                break

            task = self.frontier.poll()
            if task is None:
                if self._in_flight_count() == 0:
                    logger.info("Frontier empty and no in-flight tasks; crawl complete")
                    break
                time.sleep(DISPATCH_POLL_INTERVAL)
                continue

            if config.max_depth is not None and task.depth > config.max_depth:
                continue
            if not self.visited.mark_visited(task.normalized_url):
                continue

            with self.in_flight_lock:
                self.in_flight += 1
            page_seq += 1
            try:
                PageCrawlTask(self, task, name=f"Page-{page_seq}").start()
            except Exception:
                self.task_done()
                raise

    def _await_in_flight(self):
        while self._in_flight_count() > 0:
            if time.monotonic() >= self.deadline:
                logger.info("Deadline reached while waiting for tasks; giving up")
                self.cancelled.set()
                break
            time.sleep(DISPATCH_POLL_INTERVAL)
