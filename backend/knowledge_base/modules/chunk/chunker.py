"""Fixed-window text chunking with exact overlap.

Spans are measured in characters. Every span after the first starts exactly
``overlap_size`` characters before the previous span ends, so the spans cover
the input with no gaps and the original text is recovered by dropping the first
``overlap_size`` characters of every span but the first.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from ...infrastructure.config.pipeline import PipelineConfig, validate_chunk_window

# Structured formats get a different window than the configured default.
FILE_TYPE_CHUNK_SIZES = {
    ".md": 512,
    ".markdown": 512,
    ".html": 512,
    ".htm": 512,
    ".tex": 512,
    ".json": 1024,
}


@dataclass(frozen=True)
class TextSpan:
    """A contiguous slice ``text[start:end]`` of a source document."""

    position: int
    start: int
    end: int
    text: str

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ChunkingConfig:
    chunk_size: int
    overlap_size: int

    def __post_init__(self) -> None:
        validate_chunk_window(self.chunk_size, self.overlap_size)

    @classmethod
    def from_pipeline(cls, config: PipelineConfig, filename: Optional[str] = None) -> "ChunkingConfig":
        """Take the window from the pipeline configuration, adjusted for the file type.

        Args:
            config: Validated pipeline configuration
            filename: Source filename; its extension may select a different size

        Returns:
            Chunking configuration for this file
        """
        chunk_size = config.chunk_size
        overlap_size = config.chunk_overlap

        if filename:
            extension = os.path.splitext(filename)[1].lower()
            chunk_size = FILE_TYPE_CHUNK_SIZES.get(extension, chunk_size)
            if overlap_size >= chunk_size:
                overlap_size = chunk_size // 5

        return cls(chunk_size=chunk_size, overlap_size=overlap_size)


def chunk(text: str, config: ChunkingConfig) -> List[TextSpan]:
    """Split text into overlapping spans.

    Args:
        text: Source text
        config: Window size and overlap

    Returns:
        Spans in document order. Empty input yields an empty list.

    Example:
        A 25 character string with ``chunk_size=10, overlap_size=3`` yields
        spans ``[0:10], [7:17], [14:24], [21:25]``.
    """
    validate_chunk_window(config.chunk_size, config.overlap_size)

    length = len(text)
    spans: List[TextSpan] = []
    start = 0

    while start < length:
        end = min(start + config.chunk_size, length)
        spans.append(TextSpan(position=len(spans), start=start, end=end, text=text[start:end]))
        if end == length:
            break
        start = end - config.overlap_size

    return spans
