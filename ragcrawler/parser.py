"""
HTML parsing for the crawler.
Builds a navigable document and extracts raw anchor hrefs.
"""

from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Doctype, ProcessingInstruction

BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section", "table",
    "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
}
SKIP_TAGS = {"script", "style", "noscript", "template"}


def element_text(el: Tag) -> str:
    """Whitespace-normalized text; block-level boundaries become a single space."""
    parts = []

    def walk(node):
        for child in node.children:
            if isinstance(child, (Comment, Doctype, ProcessingInstruction)):
                continue
            if isinstance(child, NavigableString):
                parts.append(str(child))
            elif isinstance(child, Tag):
                if child.name in SKIP_TAGS:
                    continue
                block = child.name in BLOCK_TAGS
                if block:
                    parts.append(" ")
                walk(child)
                if block:
                    parts.append(" ")

    walk(el)
    return " ".join("".join(parts).split())


def preformatted_text(el: Tag) -> str:
    """Text with whitespace kept, as inside <pre>."""
    return el.get_text().strip()


class HtmlDocument:
    """Parsed page plus the URL relative links resolve against."""

    def __init__(self, soup: BeautifulSoup, base_url: str):
        self.soup = soup
        self.base_url = base_url
        base_tag = soup.find("base", href=True)
        if base_tag and base_tag["href"].strip():
            self.base_url = urljoin(base_url, base_tag["href"].strip())

    @property
    def title(self) -> str:
        tag = self.soup.find("title")
        return element_text(tag) if tag else ""

    def select(self, selector: str) -> List[Tag]:
        return self.soup.select(selector)

    def select_first(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def absolute(self, href: Optional[str]) -> Optional[str]:
        if href is None or not href.strip():
            return None
        try:
            return urljoin(self.base_url, href.strip())
        except ValueError:
            return None


class HtmlParser:

    def parse(self, html: str, base_url: str) -> HtmlDocument:
        return HtmlDocument(BeautifulSoup(html or "", "lxml"), base_url)

    def extract_links(self, html: str, base_url: str) -> List[str]:
        """
        Every non-blank <a href> in document order.
        Links are neither resolved nor filtered here; that is the normalizer's job.
        """
        soup = BeautifulSoup(html or "", "lxml")
        links = []
        for a in soup.find_all("a", href=True):
            href = a["href"]
            if not href or not href.strip():
                continue
            links.append(href)
        return links
