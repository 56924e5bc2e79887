"""Shared fixtures for the docqa test suite.

Provides deterministic embedders, mocked LLM and avatar clients, a knowledge
store rooted in a temp directory, and a minimal PDF builder.
"""
import re
import zlib
from typing import List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from docqa.avatar_client import AvatarClient
from docqa.llm_client import LLMClient
from docqa.rag.chunker import TextChunker
from docqa.rag.embeddings import Embedder, EmbeddingClient
from docqa.rag.service import RAGService
from docqa.rag.store import KnowledgeStore


class HashingEmbedder(Embedder):
    """Deterministic bag-of-words embedder.

    Each lowercase word increments one hashed dimension, so texts sharing
    words point in similar directions.
    """

    model = "hashing-test"
    source = "provider"

    def __init__(self, dimension: int = 64):
        self.dimension = dimension
        self.embed_calls = 0
        self.batch_calls = 0

    def vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dimension
        for word in re.findall(r"[a-z]+", text.lower()):
            vec[zlib.crc32(word.encode()) % self.dimension] += 1.0
        return vec

    async def embed(self, text: str) -> List[float]:
        self.embed_calls += 1
        return self.vector(text)

    async def embed_batch(self, texts: List[str]) -> List[Optional[List[float]]]:
        self.batch_calls += 1
        return [self.vector(t) for t in texts]


def build_pdf(text: str) -> bytes:
    """Build a one-page PDF showing text in Helvetica."""
    content = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_offset,
    )
    return bytes(out)


THREE_SENTENCES = (
    "Paris is the capital city of France. "
    "The Eiffel Tower was completed in eighteen eighty nine. "
    "Bananas are a yellow tropical fruit."
)


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def three_sentence_pdf() -> bytes:
    return build_pdf(THREE_SENTENCES)


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def unreachable_embedder() -> EmbeddingClient:
    """Embedding client whose provider refuses every connection."""
    provider = AsyncMock(spec=LLMClient)
    provider.configured = True
    provider.embeddings.side_effect = httpx.ConnectError("connection refused")
    return EmbeddingClient(llm=provider, dimension=8)


@pytest.fixture
async def store(tmp_path):
    kb = KnowledgeStore(kb_dir=tmp_path / "kb")
    yield kb
    await kb.flush()


@pytest.fixture
def llm() -> AsyncMock:
    client = AsyncMock(spec=LLMClient)
    client.configured = True
    client.chat.return_value = {
        "choices": [{"message": {"content": "The Eiffel Tower was completed in 1889."}}]
    }
    client.list_models.return_value = ["gpt-4o-mini"]
    return client


@pytest.fixture
def avatar() -> AsyncMock:
    client = AsyncMock(spec=AvatarClient)
    client.send_text.return_value = {"task_id": "t-1"}
    return client


@pytest.fixture
def service(store, embedder, llm, avatar) -> RAGService:
    return RAGService(
        store=store,
        embedder=embedder,
        chunker=TextChunker(chunk_size=1000, chunk_overlap=200, mode="sentence"),
        llm=llm,
        avatar=avatar,
    )


@pytest.fixture
def sentence_service(store, embedder, llm, avatar) -> RAGService:
    """Service whose chunks hold one short sentence each."""
    return RAGService(
        store=store,
        embedder=embedder,
        chunker=TextChunker(chunk_size=60, chunk_overlap=0, mode="sentence"),
        llm=llm,
        avatar=avatar,
    )
