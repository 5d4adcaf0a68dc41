"""
Verification Scenarios for the retrying HTTP fetcher
"""

import threading
import time
import unittest
from unittest.mock import MagicMock

import requests

from ragcrawler.core import FetchError
from ragcrawler.fetcher import HttpFetcher
from ragcrawler.models import FetchResponse


def make_response(status, body="<html></html>", content_type="text/html; charset=utf-8", url=None):
    r = MagicMock()
    r.status_code = status
    r.headers = {"Content-Type": content_type}
    r.iter_content.return_value = [body.encode("utf-8")]
    r.encoding = "utf-8"
    r.url = url
    return r


class TestHttpFetcher(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.session.headers = {}
        self.cancelled = threading.Event()
        self.fetcher = HttpFetcher("test-agent/1.0", time.monotonic() + 30, self.cancelled, session=self.session)

    def test_user_agent_header_installed(self):
        self.assertEqual(self.session.headers["User-Agent"], "test-agent/1.0")

    def test_success_returns_response(self):
        self.session.get.return_value = make_response(200, "<p>hi</p>", url="https://ex.com/final")
        resp = self.fetcher.fetch("https://ex.com/start")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.requested_url, "https://ex.com/start")
        self.assertEqual(resp.effective_url, "https://ex.com/final")
        self.assertEqual(resp.body, "<p>hi</p>")
        self.assertTrue(resp.is_success_html())

        _, kwargs = self.session.get.call_args
        self.assertTrue(kwargs["allow_redirects"])
        self.assertTrue(kwargs["stream"])
        connect, read = kwargs["timeout"]
        self.assertEqual(connect, 5)
        self.assertLessEqual(read, 10)

    def test_two_503_then_200_succeeds(self):
        """Scenario: transient 503s are retried within the 3-attempt budget."""
        self.session.get.side_effect = [make_response(503), make_response(503), make_response(200)]
        resp = self.fetcher.fetch("https://ex.com/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.session.get.call_count, 3)

    def test_retries_exhausted_after_three_attempts(self):
        self.session.get.side_effect = [make_response(503)] * 4
        with self.assertRaises(FetchError):
            self.fetcher.fetch("https://ex.com/")
        self.assertEqual(self.session.get.call_count, 3)

    def test_non_retryable_status_returned_immediately(self):
        self.session.get.return_value = make_response(404)
        resp = self.fetcher.fetch("https://ex.com/missing")
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.is_success_html())
        self.assertEqual(self.session.get.call_count, 1)

    def test_transport_error_retried_then_raised(self):
        error = requests.exceptions.ConnectionError("boom")
        self.session.get.side_effect = [error, error, error]
        with self.assertRaises(FetchError) as cm:
            self.fetcher.fetch("https://ex.com/")
        self.assertIs(cm.exception.__cause__, error)
        self.assertEqual(self.session.get.call_count, 3)

    def test_transport_error_then_success(self):
        self.session.get.side_effect = [requests.exceptions.Timeout("slow"), make_response(200)]
        self.assertEqual(self.fetcher.fetch("https://ex.com/").status_code, 200)

    def test_cancelled_before_attempt(self):
        self.cancelled.set()
        with self.assertRaises(FetchError):
            self.fetcher.fetch("https://ex.com/")
        self.session.get.assert_not_called()

    def test_deadline_passed_sets_cancelled(self):
        fetcher = HttpFetcher("ua", time.monotonic() - 1, self.cancelled, session=self.session)
        with self.assertRaises(FetchError):
            fetcher.fetch("https://ex.com/")
        self.assertTrue(self.cancelled.is_set())
        self.session.get.assert_not_called()

    def test_deadline_passing_mid_body_aborts_read(self):
        r = make_response(200)

        def trickle(chunk_size):
            yield b"<html>"
            self.fetcher.deadline = time.monotonic() - 1
            yield b"</html>"

        r.iter_content.side_effect = trickle
        self.session.get.return_value = r
        with self.assertRaises(FetchError):
            self.fetcher.fetch("https://ex.com/slow")
        self.assertTrue(self.cancelled.is_set())
        r.close.assert_called_once()
        self.assertEqual(self.session.get.call_count, 1)

    def test_body_read_error_retried(self):
        broken = make_response(200)
        broken.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("cut")
        self.session.get.side_effect = [broken, make_response(200, "<p>ok</p>")]
        self.assertEqual(self.fetcher.fetch("https://ex.com/").body, "<p>ok</p>")
        broken.close.assert_called_once()

    def test_retryable_response_closed(self):
        busy = make_response(503)
        self.session.get.side_effect = [busy, make_response(200)]
        self.fetcher.fetch("https://ex.com/")
        busy.close.assert_called_once()

    def test_body_without_charset_decoded_as_utf8(self):
        r = make_response(200, "café", content_type="text/html")
        r.encoding = "ISO-8859-1"
        self.session.get.return_value = r
        self.assertEqual(self.fetcher.fetch("https://ex.com/").body, "café")

    def test_close_closes_session(self):
        with self.fetcher:
            pass
        self.session.close.assert_called_once()


class TestFetchResponse(unittest.TestCase):
    def test_is_success_html(self):
        self.assertTrue(FetchResponse("u", "u", 200, "TEXT/HTML; charset=UTF-8", "").is_success_html())
        self.assertFalse(FetchResponse("u", "u", 200, "application/json", "").is_success_html())
        self.assertFalse(FetchResponse("u", "u", 301, "text/html", "").is_success_html())
        self.assertFalse(FetchResponse("u", "u", 200, "", "").is_success_html())


if __name__ == "__main__":
    unittest.main()
