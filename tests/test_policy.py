"""
Verification Scenarios for robots.txt parsing, caching and policy
"""

import threading
import time
import unittest
from unittest.mock import MagicMock

from ragcrawler.core import FetchError
from ragcrawler.models import FetchResponse, RobotsRules
from ragcrawler.policy import RobotsCache, RobotsParser, RobotsPolicy

UA = "rag-webcrawler/0.1"


def robots_response(body, status=200):
    return FetchResponse("https://x/robots.txt", "https://x/robots.txt", status, "text/plain", body)


class TestRobotsParser(unittest.TestCase):
    def test_wildcard_disallow(self):
        rules = RobotsParser.parse("User-agent: *\nDisallow: /private\n", UA)
        self.assertEqual(rules.disallow_paths, ("/private",))
        self.assertFalse(rules.is_allowed("/private/page"))
        self.assertTrue(rules.is_allowed("/public"))

    def test_other_agent_ignored(self):
        rules = RobotsParser.parse("User-agent: googlebot\nDisallow: /\n", UA)
        self.assertEqual(rules.disallow_paths, ())

    def test_matching_groups_are_unioned(self):
        body = (
            "# comment\n"
            "User-agent: *\n"
            "Disallow: /a\n"
            "\n"
            "User-agent: other-bot\n"
            "Disallow: /b\n"
            "\n"
            "User-agent: RAG-WebCrawler\n"
            "Disallow: /c\n"
            "Crawl-delay: 3\n"
        )
        rules = RobotsParser.parse(body, UA)
        self.assertEqual(rules.disallow_paths, ("/a", "/c"))
        self.assertEqual(rules.crawl_delay, 3.0)

    def test_bad_crawl_delay_ignored(self):
        rules = RobotsParser.parse("User-agent: *\nCrawl-delay: 1.5\n", UA)
        self.assertEqual(rules.crawl_delay, 0.0)

    def test_empty_disallow_allows_everything(self):
        rules = RobotsParser.parse("User-agent: *\nDisallow:\n", UA)
        self.assertTrue(rules.is_allowed("/anything"))


class TestRobotsCache(unittest.TestCase):
    def test_fetches_robots_url_once_per_host(self):
        fetcher = MagicMock()
        fetcher.fetch.return_value = robots_response("User-agent: *\nDisallow: /private\n")
        cache = RobotsCache(fetcher, UA)
        cache.rules_for("https://x.test/a")
        cache.rules_for("https://x.test/b?q=1")
        fetcher.fetch.assert_called_once_with("https://x.test/robots.txt")

    def test_concurrent_lookups_fetch_once(self):
        fetcher = MagicMock()

        def slow_fetch(url):
            time.sleep(0.05)
            return robots_response("User-agent: *\nDisallow: /p\n")

        fetcher.fetch.side_effect = slow_fetch
        cache = RobotsCache(fetcher, UA)
        threads = [threading.Thread(target=cache.rules_for, args=("https://x.test/",)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(fetcher.fetch.call_count, 1)

    def test_non_2xx_fails_open(self):
        fetcher = MagicMock()
        fetcher.fetch.return_value = robots_response("User-agent: *\nDisallow: /\n", status=404)
        rules = RobotsCache(fetcher, UA).rules_for("https://x.test/")
        self.assertEqual(rules, RobotsRules.allow_all())

    def test_fetch_error_fails_open(self):
        fetcher = MagicMock()
        fetcher.fetch.side_effect = FetchError("down")
        rules = RobotsCache(fetcher, UA).rules_for("https://x.test/")
        self.assertTrue(rules.is_allowed("/anything"))


class TestRobotsPolicy(unittest.TestCase):
    def test_deny_and_allow(self):
        fetcher = MagicMock()
        fetcher.fetch.return_value = robots_response("User-agent: *\nDisallow: /private\n")
        policy = RobotsPolicy(RobotsCache(fetcher, UA))
        self.assertFalse(policy.is_allowed("https://x/private/page"))
        self.assertTrue(policy.is_allowed("https://x/public"))

    def test_missing_path_defaults_to_root(self):
        fetcher = MagicMock()
        fetcher.fetch.return_value = robots_response("User-agent: *\nDisallow: /\n")
        policy = RobotsPolicy(RobotsCache(fetcher, UA))
        self.assertFalse(policy.is_allowed("https://x"))


if __name__ == "__main__":
    unittest.main()
