"""
Word-Window Chunker
--------------------
Splits a page's extracted text into overlapping windows of whitespace
tokens:

    window 0:  w0   ... w499
    window 1:  w450 ... w949
    window 2:  w900 ...
               (stride = max_words - overlap)

A window whose joined text is not longer than `min_chars` characters is
dropped. The walk stops once a window reaches the end of the word list, so
the trailing window is never a pure subset of the previous one.
"""
from __future__ import annotations

from typing import Iterator

from loguru import logger

from intentspace.errors import InputError
from intentspace.schemas import Chunk, Page

MAX_WORDS = 500
OVERLAP_WORDS = 50
MIN_CHUNK_CHARS = 100


class WordWindowChunker:
    """
    Usage:
        chunker = WordWindowChunker()
        chunks = chunker.chunk_page(page)
    """

    def __init__(
        self,
        max_words: int = MAX_WORDS,
        overlap: int = OVERLAP_WORDS,
        min_chars: int = MIN_CHUNK_CHARS,
    ) -> None:
        if max_words <= 0:
            raise InputError(f"max_words must be positive, got {max_words}")
        if not 0 <= overlap < max_words:
            raise InputError(
                f"overlap must be in [0, max_words), got overlap={overlap} max_words={max_words}"
            )
        self.max_words = max_words
        self.overlap = overlap
        self.min_chars = min_chars

    @classmethod
    def from_config(cls, config: dict) -> "WordWindowChunker":
        return cls(
            max_words=config.get("max_words", MAX_WORDS),
            overlap=config.get("overlap", OVERLAP_WORDS),
            min_chars=config.get("min_chars", MIN_CHUNK_CHARS),
        )

    def split(self, text: str) -> Iterator[str]:
        """Yield window texts in order. Calling again restarts from the top."""
        words = text.split()
        stride = self.max_words - self.overlap
        i = 0
        while i < len(words):
            window = " ".join(words[i: i + self.max_words])
            if len(window) > self.min_chars:
                yield window
            if i + self.max_words >= len(words):
                break
            i += stride

    def chunk_page(self, page: Page) -> list[Chunk]:
        chunks = [
            Chunk(
                analysis_id=page.analysis_id,
                page_id=page.id,
                chunk_index=index,
                text=text,
            )
            for index, text in enumerate(self.split(page.extracted_text))
        ]
        logger.debug(f"[Chunker] {page.url} -> {len(chunks)} chunk(s)")
        return chunks

    def chunk_pages(self, pages: list[Page]) -> list[Chunk]:
        """Chunk a list of Pages. Returns flat list of all chunks, page order kept."""
        all_chunks: list[Chunk] = []
        for page in pages:
            all_chunks.extend(self.chunk_page(page))
        return all_chunks
