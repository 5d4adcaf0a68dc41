from datetime import datetime, timezone

from ragcrawler.models import BlockType, ExtractedDocument, LogicalBlock
from ragcrawler.parser import HtmlDocument, element_text, preformatted_text


class ContentExtractor:
    """
    Converts a parsed page into typed logical blocks.
    Invariants:
    - Blocks are grouped by type: headings, then paragraphs, then lists, then code.
      Within a group they follow document order.
    - Empty texts never produce a block.
    """

    def extract(self, document: HtmlDocument, url: str, effective_url: str, depth: int) -> ExtractedDocument:
        canonical = None
        canonical_el = document.select_first("link[rel=canonical]")
        if canonical_el is not None:
            canonical = document.absolute(canonical_el.get("href"))

        headings = []
        blocks = []

        for h in document.select("h1, h2, h3, h4"):
            text = element_text(h)
            if text:
                headings.append(text)
                blocks.append(LogicalBlock(BlockType.HEADING, text))

        for p in document.select("p"):
            text = element_text(p)
            if text:
                blocks.append(LogicalBlock(BlockType.PARAGRAPH, text))

        for lst in document.select("ul, ol"):
            text = element_text(lst)
            if text:
                blocks.append(LogicalBlock(BlockType.LIST, text))

        for code in document.select("pre, code"):
            text = preformatted_text(code)
            if not text:
                continue
            blocks.append(LogicalBlock(BlockType.CODE, text, self._code_language(code)))

        return ExtractedDocument(
            url=effective_url,
            canonical_url=canonical,
            root_url=url,
            title=document.title,
            headings=tuple(headings),
            blocks=tuple(blocks),
            depth=depth,
            crawled_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _code_language(el):
        classes = el.get("class")
        if isinstance(classes, (list, tuple)):
            classes = " ".join(classes)
        if classes and classes.strip():
            return classes.strip()
        return None
