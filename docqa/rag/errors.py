"""Typed failures raised by the RAG pipeline.

Each error carries the HTTP status the API layer answers with.
"""


class RAGError(Exception):
    """Base class for RAG pipeline failures."""

    status_code = 500

    def __init__(self, message: str, filename: str = None):
        super().__init__(message)
        self.message = message
        self.filename = filename


class ExtractionFailure(RAGError):
    """No usable text could be extracted from a document."""

    status_code = 422


class ChunkingFailure(RAGError):
    """Chunking produced zero chunks."""

    status_code = 422


class EmbeddingUnavailable(RAGError):
    """The embedding provider cannot be used at all."""

    status_code = 503


class StoreNotFound(RAGError):
    """No knowledge base entry exists for the requested filename."""

    status_code = 404

    def __init__(self, filename: str):
        super().__init__(f"Knowledge base not found for '{filename}'", filename=filename)


class GenerationFailure(RAGError):
    """The language-generation call failed or timed out."""

    status_code = 502
