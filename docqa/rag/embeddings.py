"""Embedding generation for chunks and queries.

Handles:
- Provider calls through the LLM client, one request per text
- Bounded concurrency and per-call timeouts
- Per-chunk failure isolation (failed slots come back as None)
- Degraded mode with placeholder vectors when no provider is configured
"""
import asyncio
from typing import List, Optional

import httpx
import numpy as np
import structlog

from docqa import config
from docqa.llm_client import LLMClient
from docqa.rag.errors import EmbeddingUnavailable

logger = structlog.get_logger()


class Embedder:
    """Interface shared by the provider client and test embedders."""

    model: str = "unknown"
    dimension: int = 0
    source: str = "provider"

    async def embed(self, text: str) -> List[float]:
        raise NotImplementedError

    async def embed_batch(self, texts: List[str]) -> List[Optional[List[float]]]:
        raise NotImplementedError


class EmbeddingClient(Embedder):
    """Embeds text with an OpenAI-compatible provider."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        model: str = None,
        dimension: int = None,
        concurrency: int = None,
        timeout: float = None,
        fallback: bool = None,
        seed: Optional[int] = None,
    ):
        """Initialize the embedding client.

        Args:
            llm: Client used for provider calls
            model: Embedding model name (default from config)
            dimension: Expected vector dimension (default from config)
            concurrency: Maximum in-flight provider calls (default from config)
            timeout: Per-call timeout in seconds (default from config)
            fallback: Use placeholder vectors when no provider is configured
                (default from config)
            seed: Seed for placeholder vectors
        """
        self.llm = llm or LLMClient()
        self.model = model or config.EMBEDDING_MODEL
        self.dimension = dimension or config.EMBEDDING_DIMENSION
        self.concurrency = concurrency or config.EMBEDDING_CONCURRENCY
        self.timeout = timeout or config.EMBEDDING_TIMEOUT
        self.fallback = config.EMBEDDING_FALLBACK if fallback is None else fallback

        self._semaphore = asyncio.Semaphore(self.concurrency)
        self._rng = np.random.default_rng(seed)
        self._degraded_warned = False

        logger.info(
            "embedding_client_initialized",
            model=self.model,
            dimension=self.dimension,
            concurrency=self.concurrency,
            degraded=self.degraded,
        )

    @property
    def degraded(self) -> bool:
        """True when vectors are placeholders rather than provider output."""
        return not self.llm.configured

    @property
    def source(self) -> str:
        return "placeholder" if self.degraded else "provider"

    def _ensure_available(self) -> None:
        if not self.degraded:
            return

        if not self.fallback:
            raise EmbeddingUnavailable("Embedding provider is not configured")

        if not self._degraded_warned:
            logger.warning(
                "embedding_degraded_mode",
                reason="provider_not_configured",
                dimension=self.dimension,
            )
            self._degraded_warned = True

    def placeholder_vector(self) -> List[float]:
        """Random vector of the configured dimension, values in [-0.5, 0.5]."""
        return self._rng.uniform(-0.5, 0.5, self.dimension).tolist()

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            EmbeddingUnavailable: If the provider call fails or times out
        """
        self._ensure_available()

        if self.degraded:
            return self.placeholder_vector()

        try:
            return await self._embed_one(text)
        except (httpx.HTTPError, asyncio.TimeoutError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(
                "query_embedding_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise EmbeddingUnavailable(f"Failed to generate embedding: {e}") from e

    async def embed_batch(self, texts: List[str]) -> List[Optional[List[float]]]:
        """Embed texts concurrently, preserving order.

        A failed text yields None in its slot instead of aborting the batch.

        Raises:
            EmbeddingUnavailable: If no provider is configured and fallback is off
        """
        self._ensure_available()

        if not texts:
            return []

        if self.degraded:
            return [self.placeholder_vector() for _ in texts]

        vectors = await asyncio.gather(
            *(self._embed_isolated(index, text) for index, text in enumerate(texts))
        )

        failed = sum(1 for v in vectors if v is None)
        logger.info(
            "embeddings_batch_generated",
            batch_size=len(texts),
            failed=failed,
        )

        return list(vectors)

    async def _embed_isolated(self, index: int, text: str) -> Optional[List[float]]:
        try:
            return await self._embed_one(text)
        except (httpx.HTTPError, asyncio.TimeoutError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(
                "chunk_embedding_failed",
                chunk_index=index,
                text_preview=text[:100],
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _embed_one(self, text: str) -> List[float]:
        async with self._semaphore:
            async with asyncio.timeout(self.timeout):
                response = await self.llm.embeddings(text, model=self.model, timeout=self.timeout)

        embedding = response["data"][0]["embedding"]

        if len(embedding) != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(embedding)}"
            )

        return [float(x) for x in embedding]
