"""Tests for the embedding client."""
import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from docqa.llm_client import LLMClient
from docqa.rag.embeddings import EmbeddingClient
from docqa.rag.errors import EmbeddingUnavailable


def _response(vector):
    return {"data": [{"index": 0, "embedding": vector}]}


@pytest.fixture
def provider():
    client = AsyncMock(spec=LLMClient)
    client.configured = True
    client.embeddings.return_value = _response([0.1] * 8)
    return client


class TestDegradedMode:
    async def test_placeholder_vectors(self):
        client = EmbeddingClient(llm=LLMClient(api_key=""), dimension=16, fallback=True, seed=7)

        vectors = await client.embed_batch(["one", "two", "three"])

        assert client.degraded
        assert client.source == "placeholder"
        assert len(vectors) == 3
        for vector in vectors:
            assert len(vector) == 16
            assert all(-0.5 <= x <= 0.5 for x in vector)

    async def test_query_gets_placeholder_too(self):
        client = EmbeddingClient(llm=LLMClient(api_key=""), dimension=16, fallback=True)

        assert len(await client.embed("question")) == 16

    async def test_fallback_disabled_raises(self):
        client = EmbeddingClient(llm=LLMClient(api_key=""), dimension=16, fallback=False)

        with pytest.raises(EmbeddingUnavailable):
            await client.embed_batch(["text"])

        with pytest.raises(EmbeddingUnavailable):
            await client.embed("text")


class TestProvider:
    async def test_batch_preserves_order(self, provider):
        async def embed(text, model=None, timeout=None):
            return _response([float(len(text))] * 8)

        provider.embeddings.side_effect = embed
        client = EmbeddingClient(llm=provider, dimension=8)

        vectors = await client.embed_batch(["a", "bbb", "cc"])

        assert [v[0] for v in vectors] == [1.0, 3.0, 2.0]
        assert client.source == "provider"

    async def test_empty_batch(self, provider):
        client = EmbeddingClient(llm=provider, dimension=8)

        assert await client.embed_batch([]) == []
        provider.embeddings.assert_not_awaited()

    async def test_failed_chunk_is_isolated(self, provider):
        async def embed(text, model=None, timeout=None):
            if text == "bad":
                raise httpx.ConnectError("connection refused")
            return _response([0.5] * 8)

        provider.embeddings.side_effect = embed
        client = EmbeddingClient(llm=provider, dimension=8)

        vectors = await client.embed_batch(["good", "bad", "fine"])

        assert vectors[0] == [0.5] * 8
        assert vectors[1] is None
        assert vectors[2] == [0.5] * 8

    async def test_wrong_dimension_is_a_failure(self, provider):
        provider.embeddings.return_value = _response([0.1] * 4)
        client = EmbeddingClient(llm=provider, dimension=8)

        assert await client.embed_batch(["text"]) == [None]

        with pytest.raises(EmbeddingUnavailable):
            await client.embed("text")

    async def test_malformed_response_is_a_failure(self, provider):
        provider.embeddings.return_value = {"data": []}
        client = EmbeddingClient(llm=provider, dimension=8)

        assert await client.embed_batch(["text"]) == [None]

    async def test_timeout(self, provider):
        async def slow(text, model=None, timeout=None):
            await asyncio.sleep(5)
            return _response([0.1] * 8)

        provider.embeddings.side_effect = slow
        client = EmbeddingClient(llm=provider, dimension=8, timeout=0.01)

        assert await client.embed_batch(["text"]) == [None]

        with pytest.raises(EmbeddingUnavailable):
            await client.embed("query")

    async def test_concurrency_is_bounded(self, provider):
        in_flight = 0
        peak = 0

        async def tracked(text, model=None, timeout=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return _response([0.1] * 8)

        provider.embeddings.side_effect = tracked
        client = EmbeddingClient(llm=provider, dimension=8, concurrency=2)

        vectors = await client.embed_batch([f"text {i}" for i in range(6)])

        assert all(v is not None for v in vectors)
        assert peak == 2
