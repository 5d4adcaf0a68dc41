from ragcrawler.core import CrawlConfig, CrawlerError, FetchError
from ragcrawler.engine import Crawler, CrawlStats

__all__ = ["CrawlConfig", "CrawlerError", "FetchError", "Crawler", "CrawlStats"]
