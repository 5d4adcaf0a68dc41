"""
Robots.txt policy for the crawler.

RobotsParser turns a robots.txt body into RobotsRules, RobotsCache fetches and
memoizes rules per host, RobotsPolicy answers allow/deny for a URL.

Disallow lines from every group whose User-agent matches are accumulated into
one list; a later matching group never resets an earlier one.
"""

import threading
from urllib.parse import urlsplit, urlunsplit

from ragcrawler.core import logger
from ragcrawler.models import RobotsRules


class RobotsParser:

    @staticmethod
    def parse(body: str, user_agent: str) -> RobotsRules:
        agent_lower = (user_agent or "").lower()
        disallows = []
        crawl_delay = 0.0

        in_relevant_section = False
        for raw_line in (body or "").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            lower = line.lower()
            if lower.startswith("user-agent:"):
                value = line[len("user-agent:"):].strip().lower()
                in_relevant_section = value == "*" or value in agent_lower
                continue
            if not in_relevant_section:
                continue

            if lower.startswith("disallow:"):
                disallows.append(line[len("disallow:"):].strip())
            elif lower.startswith("crawl-delay:"):
                try:
                    crawl_delay = float(int(line[len("crawl-delay:"):].strip()))
                except ValueError:
                    pass

        return RobotsRules(disallow_paths=tuple(disallows), crawl_delay=crawl_delay)


class RobotsCache:
    """
    FLOW: Resolves host key -> Returns cached rules if present -> Otherwise fetches
    /robots.txt once per host (other hosts are not blocked) -> Parses on 2xx ->
    Falls back to allow-all on any other status or error.
    """

    def __init__(self, fetcher, user_agent):
        self.fetcher = fetcher
        self.user_agent = user_agent
        self.cache = {}
        self.host_locks = {}
        self.lock = threading.Lock()

    @staticmethod
    def host_key(url):
        parts = urlsplit(url)
        return f"{(parts.scheme or '').lower()}://{parts.netloc.lower()}"

    def rules_for(self, url) -> RobotsRules:
        key = self.host_key(url)
        rules = self.cache.get(key)
        if rules is not None:
            return rules

        with self.lock:
            host_lock = self.host_locks.setdefault(key, threading.Lock())

        with host_lock:
            rules = self.cache.get(key)
            if rules is None:
                rules = self._fetch_rules(url)
                self.cache[key] = rules
        return rules

    def _fetch_rules(self, url) -> RobotsRules:
        parts = urlsplit(url)
        robots_url = urlunsplit((parts.scheme, parts.netloc, "/robots.txt", "", ""))
        try:
            resp = self.fetcher.fetch(robots_url)
            if 200 <= resp.status_code < 300:
                rules = RobotsParser.parse(resp.body, self.user_agent)
                logger.info(
                    f"[ROBOTS] {robots_url}: {len(rules.disallow_paths)} disallow rules, "
                    f"crawl-delay={rules.crawl_delay:g}s"
                )
                return rules
            logger.info(f"[ROBOTS] {robots_url} returned {resp.status_code}; allowing all")
            return RobotsRules.allow_all()
        except Exception as e:
            logger.warning(f"Failed to fetch robots.txt for {url}: {e}")
            return RobotsRules.allow_all()


class RobotsPolicy:

    def __init__(self, cache: RobotsCache):
        self.cache = cache

    def is_allowed(self, url) -> bool:
        rules = self.cache.rules_for(url)
        path = urlsplit(url).path or "/"
        return rules.is_allowed(path)
