"""RAG service for uploaded documents.

Orchestrates:
- Ingestion: text extraction, chunking, embedding, storage
- Search: query embedding and similarity ranking
- Answering: context composition, grounded generation, optional avatar speech

Ingestion stores nothing unless every step completes, so a failed or
cancelled upload never leaves a partial entry behind.
"""
import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import httpx
import structlog

from docqa import config
from docqa.avatar_client import AvatarClient, estimate_speaking_duration
from docqa.llm_client import LLMClient
from docqa.rag.chunker import TextChunker
from docqa.rag.embeddings import Embedder, EmbeddingClient
from docqa.rag.errors import (
    ChunkingFailure,
    EmbeddingUnavailable,
    ExtractionFailure,
    GenerationFailure,
    StoreNotFound,
)
from docqa.rag.models import (
    AnswerResult,
    Chunk,
    DocumentSummary,
    EntryMetadata,
    IngestResult,
    KnowledgeBaseEntry,
    SearchResult,
)
from docqa.rag.pdf_extractor import PDFTextExtractor
from docqa.rag.search import format_context, search
from docqa.rag.store import KnowledgeStore

logger = structlog.get_logger()

NO_RELEVANT_INFORMATION = (
    "I couldn't find relevant information in the document to answer your question."
)
FALLBACK_ANSWER_CHARS = 900

# Transport failures plus malformed response bodies (non-JSON or wrong shape)
PROVIDER_ERRORS = (
    httpx.HTTPError,
    asyncio.TimeoutError,
    ValueError,
    AttributeError,
    KeyError,
    IndexError,
    TypeError,
)

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions about a PDF document. "
    "Answer strictly and only from the provided context excerpts. If the context "
    "does not contain enough information to answer, say explicitly that you "
    "cannot find the answer in the document."
)


class RAGService:
    """Ingests documents and answers questions grounded in them."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedder: Embedder,
        extractor: Optional[PDFTextExtractor] = None,
        chunker: Optional[TextChunker] = None,
        llm: Optional[LLMClient] = None,
        avatar: Optional[AvatarClient] = None,
        generation_timeout: float = None,
    ):
        """Initialize the RAG service.

        Args:
            store: Knowledge store holding ingested documents
            embedder: Embedder for chunks and queries
            extractor: Text extractor (default: PDFTextExtractor())
            chunker: Text chunker (default from config)
            llm: Chat client for answer generation; None disables generation
            avatar: Avatar client used when an answer should be spoken
            generation_timeout: Timeout for the generation call in seconds
        """
        self.store = store
        self.embedder = embedder
        self.extractor = extractor or PDFTextExtractor()
        self.chunker = chunker or TextChunker()
        self.llm = llm
        self.avatar = avatar
        self.generation_timeout = generation_timeout or config.LLM_TIMEOUT

        logger.info(
            "rag_service_initialized",
            embedding_model=self.embedder.model,
            chunk_mode=self.chunker.mode,
            chunk_size=self.chunker.chunk_size,
            generation_enabled=self.llm is not None,
        )

    async def ingest(self, filename: str, data: bytes) -> IngestResult:
        """Process a document and store it in the knowledge base.

        Args:
            filename: Document key; re-ingesting a filename replaces it
            data: Raw document bytes

        Returns:
            IngestResult with chunk count and text length

        Raises:
            ExtractionFailure: If no text could be extracted
            ChunkingFailure: If chunking produced no chunks
            EmbeddingUnavailable: If the embedder cannot be used at all
        """
        logger.info("ingest_started", filename=filename, byte_size=len(data))

        # pypdf parsing is CPU-bound
        extracted = await asyncio.to_thread(self.extractor.extract_with_method, data)
        text = extracted.text.strip()
        if not text:
            raise ExtractionFailure("No text could be extracted from the document", filename=filename)

        texts = self.chunker.chunk(text)
        if not texts:
            raise ChunkingFailure("No valid chunks could be created from the document", filename=filename)

        vectors = await self.embedder.embed_batch(texts)
        if len(vectors) != len(texts):
            raise EmbeddingUnavailable(
                f"Embedder returned {len(vectors)} vectors for {len(texts)} chunks",
                filename=filename,
            )

        chunks = [
            Chunk(
                chunk_index=index,
                text=chunk_text,
                embedding=vector,
                processed=vector is not None,
                embedding_source=self.embedder.source if vector is not None else None,
            )
            for index, (chunk_text, vector) in enumerate(zip(texts, vectors))
        ]

        entry = KnowledgeBaseEntry(
            filename=filename,
            chunks=chunks,
            original_text=text,
            metadata=EntryMetadata(
                processed_at=datetime.now(timezone.utc).isoformat(),
                total_chunks=len(chunks),
                text_length=len(text),
                byte_size=len(data),
                extraction_method=extracted.method,
                chunk_mode=self.chunker.mode,
                embedding_model=self.embedder.model,
                embedding_dimension=self.embedder.dimension,
            ),
        )

        await self.store.put(filename, entry)

        unprocessed = len(chunks) - len(entry.processed_chunks)
        logger.info(
            "ingest_completed",
            filename=filename,
            chunks_count=len(chunks),
            unprocessed_chunks=unprocessed,
            text_length=len(text),
            extraction_method=extracted.method,
        )

        return IngestResult(filename=filename, chunks_count=len(chunks), text_length=len(text))

    async def search(self, query: str, filename: str, k: int = None) -> List[SearchResult]:
        """Find the chunks of a document most similar to a query.

        Args:
            query: Search text
            filename: Document to search
            k: Maximum number of results (default: config.SEARCH_TOP_K)

        Returns:
            Ranked results; empty if the document has no searchable chunks

        Raises:
            StoreNotFound: If the document is unknown
            EmbeddingUnavailable: If the query cannot be embedded
        """
        k = config.SEARCH_TOP_K if k is None else k

        entry = await self.store.get(filename)
        if entry is None:
            logger.warning("knowledge_entry_not_found", filename=filename)
            raise StoreNotFound(filename)

        if not entry.processed_chunks:
            logger.info("no_searchable_chunks", filename=filename, total_chunks=len(entry.chunks))
            return []

        query_vector = await self.embedder.embed(query)
        return search(query_vector, entry, k)

    async def answer(
        self,
        query: str,
        filename: str,
        k: int = None,
        speak: bool = False,
        session_id: Optional[str] = None,
    ) -> AnswerResult:
        """Answer a question from a document's most relevant chunks.

        Args:
            query: User question
            filename: Document to ground the answer in
            k: Number of chunks used as context (default: config.RETRIEVAL_TOP_K)
            speak: Forward the answer to the avatar session
            session_id: Avatar session that should speak the answer

        Returns:
            AnswerResult with answer, references and confidence

        Raises:
            StoreNotFound: If the document is unknown
            EmbeddingUnavailable: If the query cannot be embedded
        """
        k = config.RETRIEVAL_TOP_K if k is None else k
        results = await self.search(query, filename, k)

        if not results:
            logger.info("rag_no_relevant_chunks", filename=filename)
            return AnswerResult(answer=NO_RELEVANT_INFORMATION, references=[], confidence=0.0)

        try:
            answer = await self._generate(query, format_context(results))
        except GenerationFailure as e:
            logger.warning("rag_generation_fallback", filename=filename, error=e.message)
            answer = format_context(results, numbered=False, max_chars=FALLBACK_ANSWER_CHARS)

        speaking_duration = 0
        if speak and session_id:
            speaking_duration = await self._speak(session_id, answer)

        logger.info(
            "rag_answer_completed",
            filename=filename,
            references=len(results),
            confidence=results[0].similarity,
            spoken=speaking_duration > 0,
        )

        return AnswerResult(
            answer=answer,
            references=results,
            confidence=results[0].similarity,
            speaking_duration=speaking_duration,
        )

    async def list_documents(self) -> List[DocumentSummary]:
        """List all stored documents."""
        return await self.store.list()

    async def delete(self, filename: str) -> None:
        """Remove a document from the knowledge base.

        Raises:
            StoreNotFound: If the document is unknown
        """
        if not await self.store.delete(filename):
            raise StoreNotFound(filename)

    async def _generate(self, query: str, context: str) -> str:
        if self.llm is None or not self.llm.configured:
            raise GenerationFailure("Language model is not configured")

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Context:\n{context}\n\nQuestion: {query}\n\nAnswer:"},
        ]

        try:
            async with asyncio.timeout(self.generation_timeout):
                response = await self.llm.chat(
                    messages,
                    temperature=config.LLM_TEMPERATURE,
                    max_tokens=config.LLM_MAX_TOKENS,
                )
            answer = LLMClient.message_content(response).strip()
        except PROVIDER_ERRORS as e:
            raise GenerationFailure(f"Answer generation failed: {e}") from e

        if not answer:
            raise GenerationFailure("Language model returned an empty answer")

        return answer

    async def _speak(self, session_id: str, text: str) -> int:
        if self.avatar is None:
            logger.warning("avatar_not_configured", session_id=session_id)
            return 0

        try:
            await self.avatar.send_text(session_id, text)
        except PROVIDER_ERRORS as e:
            logger.warning(
                "avatar_speak_failed",
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        return estimate_speaking_duration(text)


def build_service(kb_dir: Path = None) -> RAGService:
    """Build a RAGService wired to the configured providers.

    Args:
        kb_dir: Knowledge base directory override

    Returns:
        RAGService instance
    """
    llm = LLMClient()

    return RAGService(
        store=KnowledgeStore(kb_dir=kb_dir),
        embedder=EmbeddingClient(llm=llm),
        extractor=PDFTextExtractor(),
        chunker=TextChunker(),
        llm=llm,
        avatar=AvatarClient(),
    )
