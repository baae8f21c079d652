"""Unit tests for DocumentChunker."""

import pytest

from tender_ai.services.chunking.document_chunker import (
    DocumentChunker,
    chunk_text,
    expected_chunk_count,
)


class TestDocumentChunker:
    """Window boundaries and counts."""

    def test_2500_chars_gives_three_windows(self):
        text = "x" * 2500
        chunks = list(DocumentChunker(text, chunk_size=1000, overlap=200))

        assert [(c.start, c.end) for c in chunks] == [(0, 1000), (800, 1800), (1600, 2500)]
        assert len(chunks) == expected_chunk_count(2500, 1000, 200) == 3

    def test_consecutive_windows_share_overlap(self):
        text = "".join(chr(65 + i % 26) for i in range(3000))
        chunks = list(chunk_text(text))

        for previous, current in zip(chunks, chunks[1:]):
            assert previous.text[-200:] == current.text[:200]

    def test_every_character_is_covered(self):
        text = "abcdefghij" * 437
        chunks = list(chunk_text(text, chunk_size=500, overlap=100))

        assert chunks[0].start == 0
        assert chunks[-1].end == len(text)
        rebuilt = chunks[0].text + "".join(c.text[100:] for c in chunks[1:])
        assert rebuilt == text

    def test_short_text_is_single_window(self):
        chunks = list(chunk_text("short text"))

        assert len(chunks) == 1
        assert chunks[0].text == "short text"
        assert (chunks[0].start, chunks[0].end) == (0, 10)

    def test_empty_text_yields_one_empty_window(self):
        chunks = list(chunk_text(""))

        assert len(chunks) == 1
        assert chunks[0].text == ""

    def test_iteration_is_restartable(self):
        chunker = chunk_text("y" * 1900)

        assert list(chunker) == list(chunker)
        assert len(chunker) == 3

    def test_exact_multiple_does_not_add_empty_tail(self):
        chunks = list(chunk_text("z" * 1800))

        assert [(c.start, c.end) for c in chunks] == [(0, 1000), (800, 1800)]

    @pytest.mark.parametrize("size,overlap", [(0, 0), (100, 100), (100, -1), (100, 150)])
    def test_invalid_window_rejected(self, size, overlap):
        with pytest.raises(ValueError):
            DocumentChunker("text", chunk_size=size, overlap=overlap)
