from ragcrawler.storage.jsonl import JsonlChunkWriter

__all__ = ["JsonlChunkWriter"]
