"""Text chunking for the RAG pipeline.

Implements character-based chunking to avoid tokenizer dependencies. Two
modes are available, and a chunker instance uses exactly one so a document's
chunk list never mixes chunk semantics:

- "sentence": greedy accumulation of whole sentences up to chunk_size
- "window": fixed character windows with overlap
"""
import re
from typing import List
from dataclasses import dataclass
import structlog

from docqa import config

logger = structlog.get_logger()

CHUNK_MODES = ("sentence", "window")

# A sentence keeps its terminal punctuation; a trailing fragment without
# punctuation is a sentence too.
SENTENCE_PATTERN = re.compile(r"[^.!?]+(?:[.!?]+|$)")


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Character-based text chunker."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
        mode: str = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Target size of each chunk in characters (default from config)
            chunk_overlap: Overlap between windows in characters, window mode only
                (default from config)
            mode: "sentence" or "window" (default from config)
        """
        self.chunk_size = chunk_size if chunk_size is not None else config.CHUNK_SIZE
        self.chunk_overlap = chunk_overlap if chunk_overlap is not None else config.CHUNK_OVERLAP
        self.mode = mode or config.CHUNK_MODE

        # Validate parameters
        if self.mode not in CHUNK_MODES:
            raise ValueError(f"Unknown chunk mode '{self.mode}', expected one of {CHUNK_MODES}")

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be non-negative and less than "
                f"chunk size ({self.chunk_size})"
            )

        logger.info(
            "chunker_initialized",
            mode=self.mode,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk(self, text: str) -> List[str]:
        """Split text into ordered chunk strings.

        Args:
            text: Text to chunk

        Returns:
            List of non-empty chunk strings in reading order
        """
        return [c.content for c in self.chunk_text(text)]

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into chunks with source positions.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects
        """
        if not text or not text.strip():
            return []

        if self.mode == "sentence":
            chunks = self._chunk_sentences(text)
        else:
            chunks = self._chunk_windows(text)

        logger.info(
            "text_chunked",
            mode=self.mode,
            text_length=len(text),
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // max(len(chunks), 1),
        )

        return chunks

    def split_sentences(self, text: str) -> List[TextChunk]:
        """Split text into stripped, non-empty sentences with positions."""
        sentences = []

        for match in SENTENCE_PATTERN.finditer(text):
            raw = match.group(0)
            sentence = raw.strip()
            if not sentence:
                continue

            start = match.start() + (len(raw) - len(raw.lstrip()))
            sentences.append(
                TextChunk(
                    content=sentence,
                    char_start=start,
                    char_end=start + len(sentence),
                    chunk_index=len(sentences),
                )
            )

        return sentences

    def _chunk_sentences(self, text: str) -> List[TextChunk]:
        chunks: List[TextChunk] = []
        buffer: List[TextChunk] = []
        buffer_length = 0

        def flush():
            chunks.append(
                TextChunk(
                    content=" ".join(s.content for s in buffer),
                    char_start=buffer[0].char_start,
                    char_end=buffer[-1].char_end,
                    chunk_index=len(chunks),
                )
            )

        for sentence in self.split_sentences(text):
            added = len(sentence.content) + (1 if buffer else 0)

            if buffer and buffer_length + added > self.chunk_size:
                flush()
                buffer = []
                buffer_length = 0
                added = len(sentence.content)

            # An oversized sentence still becomes a chunk of its own
            buffer.append(sentence)
            buffer_length += added

        if buffer:
            flush()

        return chunks

    def _chunk_windows(self, text: str) -> List[TextChunk]:
        chunks: List[TextChunk] = []
        step = self.chunk_size - self.chunk_overlap
        text_length = len(text)

        for start in range(0, text_length, step):
            end = min(start + self.chunk_size, text_length)
            window = text[start:end]

            if window.strip():
                chunks.append(
                    TextChunk(
                        content=window.strip(),
                        char_start=start,
                        char_end=end,
                        chunk_index=len(chunks),
                    )
                )

            if end >= text_length:
                break

        return chunks

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "mode": self.mode,
            "overlap": self.chunk_overlap if self.mode == "window" else 0,
        }
