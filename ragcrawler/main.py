"""
Entry point for the crawler.
Parses arguments, builds the CrawlConfig, runs one crawl and prints the summary.
"""

import argparse
import logging
import sys
import time

from ragcrawler.core import (
    DEFAULT_MAX_TIME_SECONDS,
    DEFAULT_PER_HOST_CONCURRENCY,
    DEFAULT_PER_HOST_MIN_DELAY_MS,
    DEFAULT_USER_AGENT,
    CrawlConfig,
    logger,
    setup_logger,
)
from ragcrawler.engine import Crawler


def build_parser():
    parser = argparse.ArgumentParser(
        prog="ragcrawler",
        description="Crawl one website and write retrieval chunks as JSON Lines",
    )
    parser.add_argument("--url", required=True, help="Root URL; only this scheme/host/port is crawled")
    parser.add_argument("--output", required=True, help="Output .jsonl file")
    parser.add_argument("--maxtime", type=int, default=DEFAULT_MAX_TIME_SECONDS,
                        help=f"Max crawl time in seconds (default {DEFAULT_MAX_TIME_SECONDS})")
    parser.add_argument("--maxPages", type=int, default=None, help="Max number of pages to crawl")
    parser.add_argument("--maxDepth", type=int, default=None, help="Max crawl depth from root (0 = only root)")
    parser.add_argument("--perHostConcurrency", type=int, default=DEFAULT_PER_HOST_CONCURRENCY,
                        help=f"Max concurrent requests per host (default {DEFAULT_PER_HOST_CONCURRENCY})")
    parser.add_argument("--perHostMinDelayMillis", type=int, default=DEFAULT_PER_HOST_MIN_DELAY_MS,
                        help=f"Minimum delay between requests per host (default {DEFAULT_PER_HOST_MIN_DELAY_MS}ms)")
    parser.add_argument("--userAgent", default=DEFAULT_USER_AGENT,
                        help=f"User agent string (default {DEFAULT_USER_AGENT})")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def validate_args(parser, args):
    if args.maxtime <= 0:
        parser.error("--maxtime must be > 0")
    if args.maxPages is not None and args.maxPages <= 0:
        parser.error("--maxPages must be > 0")
    if args.maxDepth is not None and args.maxDepth < 0:
        parser.error("--maxDepth must be >= 0")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(parser, args)

    setup_logger(log_file=args.log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = CrawlConfig(
            root_url=args.url,
            max_time_seconds=args.maxtime,
            max_pages=args.maxPages,
            max_depth=args.maxDepth,
            per_host_concurrency=args.perHostConcurrency,
            per_host_min_delay_ms=args.perHostMinDelayMillis,
            user_agent=args.userAgent,
        )
    except ValueError as e:
        parser.error(str(e))

    start_time = time.time()
    try:
        stats = Crawler(config, args.output).run()
    except Exception:
        logger.exception("Crawler failed with unexpected error")
        return 1

    summary = stats.as_dict()
    print("\n" + "=" * 60)
    print("CRAWL COMPLETED")
    print("=" * 60)
    print(f"Root:               {config.root_url}")
    print(f"Duration:           {time.time() - start_time:.2f} seconds")
    print(f"Pages crawled:      {summary['pages_crawled']}")
    print(f"Chunks written:     {summary['chunks_written']}")
    print(f"Duplicate chunks:   {summary['duplicate_chunks']}")
    print(f"Robots denied:      {summary['robots_denied']}")
    print(f"Skipped (non-HTML): {summary['skipped']}")
    print(f"Failed pages:       {summary['failed']}")
    for reason, count in sorted(summary['failure_reasons'].items()):
        print(f"  - {reason}: {count}")
    print(f"Output:             {args.output}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
