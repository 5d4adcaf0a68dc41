"""
Greedy packing of logical blocks into size-bounded output chunks.
"""

import dataclasses
import uuid
from typing import List, Optional

from ragcrawler.core import CHUNK_MAX_CHARS
from ragcrawler.hasher import chunk_hash, page_hash
from ragcrawler.models import BlockType, ExtractedDocument, OutputChunk

SEPARATOR = "\n\n"


class ContentChunker:
    """
    FLOW: Walks blocks in extraction order -> Code blocks flush the buffer and stand alone ->
    Text blocks accumulate until the next one would overflow max_chars -> Flushes the tail ->
    Backfills chunk_index / chunk_count in a second pass.
    """

    def __init__(self, max_chars: int = CHUNK_MAX_CHARS):
        self.max_chars = max_chars

    def chunk(self, doc: ExtractedDocument) -> List[OutputChunk]:
        built = []
        texts = []
        block_types = []
        char_count = 0

        def flush():
            nonlocal char_count
            if texts:
                built.append(self._build_chunk(doc, len(built), SEPARATOR.join(texts), block_types, None))
                texts.clear()
                block_types.clear()
                char_count = 0

        for block in doc.blocks:
            text = block.text
            if text is None or not text.strip():
                continue

            if block.type is BlockType.CODE:
                flush()
                built.append(self._build_chunk(doc, len(built), text, ["code"], block.code_language))
                continue

            to_add = len(text) + len(SEPARATOR)
            if char_count + to_add > self.max_chars and texts:
                flush()
            texts.append(text)
            block_types.append(block.type.value)
            char_count += to_add

        flush()

        total = len(built)
        return [dataclasses.replace(c, chunk_index=i, chunk_count=total) for i, c in enumerate(built)]

    @staticmethod
    def _build_chunk(doc: ExtractedDocument, chunk_index: int, content: str,
                     block_types: List[str], code_language: Optional[str]) -> OutputChunk:
        content_type = "code" if list(block_types) == ["code"] else "text"
        return OutputChunk(
            id=str(uuid.uuid4()),
            url=doc.url,
            canonical_url=doc.canonical_url,
            root_url=doc.root_url,
            title=doc.title,
            headings=doc.headings,
            chunk_index=chunk_index,
            chunk_count=0,
            content=content,
            content_type=content_type,
            block_types=tuple(block_types),
            code_language=code_language,
            page_hash=page_hash(doc.url),
            chunk_hash=chunk_hash(doc.url, chunk_index, content),
            depth=doc.depth,
            h_path=doc.headings,
            crawled_at=doc.crawled_at,
        )
