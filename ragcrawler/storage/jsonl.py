"""
Append-only JSON Lines sink for output chunks.
One record per line, flushed before the next writer proceeds.
"""

import json
import threading
from pathlib import Path

from ragcrawler.models import OutputChunk


class JsonlChunkWriter:

    def __init__(self, path):
        self.path = Path(path)
        self.lock = threading.Lock()
        self.closed = False
        self.count = 0
        self._file = open(self.path, "w", encoding="utf-8")

    def write_chunk(self, chunk: OutputChunk) -> None:
        line = json.dumps(chunk.to_dict(), ensure_ascii=False)
        with self.lock:
            if self.closed:
                raise ValueError(f"writer for {self.path} is closed")
            self._file.write(line + "\n")
            self._file.flush()
            self.count += 1

    def close(self):
        with self.lock:
            if not self.closed:
                self.closed = True
                self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
