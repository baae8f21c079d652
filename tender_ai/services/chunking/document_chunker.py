"""Fixed-size overlapping character windows over extracted document text."""

import math
from dataclasses import dataclass
from typing import Iterator

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True)
class TextChunk:
    """A window of text with its [start, end) offsets in the source."""
    text: str
    start: int
    end: int


class DocumentChunker:
    """Lazy, restartable sequence of overlapping windows.

    Window i covers [i * (size - overlap), min(start + size, len(text))).
    Iteration stops at the first window that reaches the end of the text,
    so every character is covered and consecutive windows share exactly
    `overlap` characters (the last one may share more).

    Each call to iter() starts again from the beginning.
    """

    def __init__(
        self,
        text: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_CHUNK_OVERLAP,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be >= 0 and smaller than chunk_size")
        self.text = text or ""
        self.chunk_size = chunk_size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def __iter__(self) -> Iterator[TextChunk]:
        length = len(self.text)
        start = 0
        while True:
            end = min(start + self.chunk_size, length)
            yield TextChunk(self.text[start:end], start, end)
            if end >= length:
                return
            start += self.step

    def __len__(self) -> int:
        return expected_chunk_count(len(self.text), self.chunk_size, self.overlap)


def expected_chunk_count(
    length: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> int:
    """ceil((L - O) / (C - O)) for L > O, else 1."""
    if length <= overlap:
        return 1
    return max(1, math.ceil((length - overlap) / (chunk_size - overlap)))


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> DocumentChunker:
    return DocumentChunker(text, chunk_size=chunk_size, overlap=overlap)
