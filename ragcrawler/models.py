from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class FrontierTask:
    """
    Unit of work owned by the Frontier.
    Depth is relative to the crawl root (root = 0).
    """
    normalized_url: str
    depth: int = 0


@dataclass(frozen=True)
class FetchResponse:
    """
    Result of a single successful HTTP exchange (any status code).
    effective_url is the URL after redirects were followed.
    """
    requested_url: str
    effective_url: str
    status_code: int
    content_type: str
    body: str

    def is_success_html(self) -> bool:
        if not (200 <= self.status_code < 300):
            return False
        return "text/html" in (self.content_type or "").lower()


@dataclass(frozen=True)
class RobotsRules:
    """Disallow prefixes and crawl delay (seconds) that apply to one host."""
    disallow_paths: Tuple[str, ...] = ()
    crawl_delay: float = 0.0

    @classmethod
    def allow_all(cls) -> "RobotsRules":
        return cls()

    def is_allowed(self, path: str) -> bool:
        for prefix in self.disallow_paths:
            if prefix and path.startswith(prefix):
                return False
        return True


class BlockType(Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    CODE = "code"


@dataclass(frozen=True)
class LogicalBlock:
    type: BlockType
    text: str
    code_language: Optional[str] = None


@dataclass(frozen=True)
class ExtractedDocument:
    """
    Page content after extraction, before chunking.
    url is the effective URL; root_url is the URL that was requested.
    """
    url: str
    canonical_url: Optional[str]
    root_url: str
    title: str
    headings: Tuple[str, ...]
    blocks: Tuple[LogicalBlock, ...]
    depth: int
    crawled_at: datetime


@dataclass(frozen=True)
class OutputChunk:
    """
    One emitted record.
    chunk_index / chunk_count are only final once the chunker has backfilled them.
    """
    id: str
    url: str
    canonical_url: Optional[str]
    root_url: str
    title: str
    headings: Tuple[str, ...]
    chunk_index: int
    chunk_count: int
    content: str
    content_type: str
    block_types: Tuple[str, ...]
    code_language: Optional[str]
    page_hash: str
    chunk_hash: str
    depth: int
    h_path: Tuple[str, ...]
    crawled_at: datetime
    lang: str = "en"
    source: str = "web-docs"
    metadata: Dict[str, Any] = field(default_factory=lambda: {
        "status_code": 200,
        "content_type_header": "text/html",
    })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "canonicalUrl": self.canonical_url,
            "rootUrl": self.root_url,
            "title": self.title,
            "headings": list(self.headings),
            "chunkIndex": self.chunk_index,
            "chunkCount": self.chunk_count,
            "content": self.content,
            "contentType": self.content_type,
            "blockTypes": list(self.block_types),
            "codeLanguage": self.code_language,
            "pageHash": self.page_hash,
            "chunkHash": self.chunk_hash,
            "depth": self.depth,
            "hPath": list(self.h_path),
            "lang": self.lang,
            "crawledAt": self.crawled_at.isoformat(),
            "source": self.source,
            "metadata": dict(self.metadata),
        }
