"""Data model for the document knowledge base.

A KnowledgeBaseEntry is the unit of persistence: one document plus its
ordered chunks and their embeddings.
"""
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional


@dataclass
class Chunk:
    """A bounded segment of a document's text and its embedding."""

    chunk_index: int
    text: str
    embedding: Optional[List[float]] = None
    processed: bool = False
    embedding_source: Optional[str] = None  # "provider" or "placeholder"

    @property
    def searchable(self) -> bool:
        return self.processed and bool(self.embedding)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        return cls(
            chunk_index=int(data["chunk_index"]),
            text=data["text"],
            embedding=data.get("embedding"),
            processed=bool(data.get("processed", False)),
            embedding_source=data.get("embedding_source"),
        )


@dataclass
class EntryMetadata:
    """Document-level metadata stored alongside the chunks."""

    processed_at: str
    total_chunks: int
    text_length: int
    byte_size: int = 0
    extraction_method: Optional[str] = None
    chunk_mode: Optional[str] = None
    embedding_model: Optional[str] = None
    embedding_dimension: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntryMetadata":
        return cls(
            processed_at=data["processed_at"],
            total_chunks=int(data["total_chunks"]),
            text_length=int(data["text_length"]),
            byte_size=int(data.get("byte_size", 0)),
            extraction_method=data.get("extraction_method"),
            chunk_mode=data.get("chunk_mode"),
            embedding_model=data.get("embedding_model"),
            embedding_dimension=data.get("embedding_dimension"),
        )


@dataclass
class KnowledgeBaseEntry:
    """One document with its ordered chunks and metadata."""

    filename: str
    chunks: List[Chunk]
    metadata: EntryMetadata
    original_text: Optional[str] = None

    @property
    def processed_chunks(self) -> List[Chunk]:
        """Chunks that can take part in similarity search."""
        return [c for c in self.chunks if c.searchable]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeBaseEntry":
        return cls(
            filename=data["filename"],
            chunks=[Chunk.from_dict(c) for c in data.get("chunks", [])],
            metadata=EntryMetadata.from_dict(data["metadata"]),
            original_text=data.get("original_text"),
        )


@dataclass
class SearchResult:
    """A chunk paired with its similarity to a query."""

    text: str
    similarity: float
    chunk_index: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "similarity": self.similarity,
            "metadata": self.metadata,
        }


@dataclass
class DocumentSummary:
    """Listing row for a stored document."""

    filename: str
    chunks_count: Optional[int] = None
    processed_at: Optional[str] = None


@dataclass
class IngestResult:
    filename: str
    chunks_count: int
    text_length: int


@dataclass
class AnswerResult:
    """Grounded answer with the chunks it was built from."""

    answer: str
    references: List[SearchResult]
    confidence: float
    speaking_duration: int = 0
