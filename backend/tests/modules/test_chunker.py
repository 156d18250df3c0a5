"""Tests for fixed-window chunking."""

import pytest

from knowledge_base.infrastructure.config import PipelineConfig
from knowledge_base.modules.chunk.chunker import ChunkingConfig, chunk
from knowledge_base.modules.common.exceptions import ConfigurationError


def reconstruct(spans, overlap_size):
    if not spans:
        return ""
    return spans[0].text + "".join(span.text[overlap_size:] for span in spans[1:])


class TestChunk:
    """Span boundaries, coverage and reconstruction."""

    def test_short_text_with_small_window(self):
        """25 characters, window 10, overlap 3."""
        text = "abcdefghijklmnopqrstuvwxy"
        spans = chunk(text, ChunkingConfig(chunk_size=10, overlap_size=3))

        assert [(span.start, span.end) for span in spans] == [(0, 10), (7, 17), (14, 24), (21, 25)]
        assert [span.position for span in spans] == [0, 1, 2, 3]
        assert spans[-1].text == "vwxy"

    def test_empty_text_yields_no_spans(self):
        assert chunk("", ChunkingConfig(chunk_size=10, overlap_size=3)) == []

    def test_text_shorter_than_window_is_one_span(self):
        spans = chunk("hello", ChunkingConfig(chunk_size=10, overlap_size=3))

        assert len(spans) == 1
        assert spans[0].text == "hello"
        assert (spans[0].start, spans[0].end) == (0, 5)

    def test_text_exactly_one_window(self):
        spans = chunk("a" * 10, ChunkingConfig(chunk_size=10, overlap_size=3))
        assert len(spans) == 1

    @pytest.mark.parametrize("length,size,overlap", [(1, 1, 0), (100, 10, 0), (101, 10, 9), (997, 64, 16), (500, 7, 3)])
    def test_spans_cover_text_and_reconstruct_it(self, length, size, overlap):
        text = "".join(chr(ord("a") + i % 26) for i in range(length))
        spans = chunk(text, ChunkingConfig(chunk_size=size, overlap_size=overlap))

        assert spans[0].start == 0
        assert spans[-1].end == length
        for previous, current in zip(spans, spans[1:]):
            assert current.start == previous.end - overlap
            assert len(previous) == size
        assert all(len(span) <= size for span in spans)
        assert reconstruct(spans, overlap) == text

    def test_overlap_regions_match(self):
        text = "The quick brown fox jumps over the lazy dog again and again."
        spans = chunk(text, ChunkingConfig(chunk_size=12, overlap_size=4))

        for previous, current in zip(spans, spans[1:]):
            assert previous.text[-4:] == current.text[:4]


class TestChunkingConfig:
    """Window validation and file-type sizes."""

    @pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 0), (10, -1), (10, 10), (10, 11)])
    def test_invalid_window_is_rejected(self, size, overlap):
        with pytest.raises(ConfigurationError):
            ChunkingConfig(chunk_size=size, overlap_size=overlap)

    def test_defaults_come_from_pipeline_config(self):
        config = ChunkingConfig.from_pipeline(PipelineConfig(chunk_size=1000, chunk_overlap=200), "notes.txt")
        assert (config.chunk_size, config.overlap_size) == (1000, 200)

    @pytest.mark.parametrize("filename,size", [("README.md", 512), ("page.html", 512), ("paper.tex", 512), ("data.json", 1024)])
    def test_file_type_selects_window(self, filename, size):
        config = ChunkingConfig.from_pipeline(PipelineConfig(chunk_size=1000, chunk_overlap=200), filename)
        assert config.chunk_size == size
        assert config.overlap_size == 200

    def test_overlap_shrinks_when_file_type_window_is_smaller(self):
        config = ChunkingConfig.from_pipeline(PipelineConfig(chunk_size=2000, chunk_overlap=600), "README.md")
        assert config.chunk_size == 512
        assert config.overlap_size == 512 // 5
