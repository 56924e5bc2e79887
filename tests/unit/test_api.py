"""Tests for the HTTP API."""
import io

import httpx
import pytest
from werkzeug.datastructures import FileStorage

from docqa import config
from docqa.main import create_app


@pytest.fixture
def app(service):
    return create_app(service=service)


@pytest.fixture
def client(app):
    return app.test_client()


def _pdf_upload(data: bytes, filename: str = "facts.pdf", content_type: str = "application/pdf"):
    return {"pdf": FileStorage(io.BytesIO(data), filename=filename, content_type=content_type)}


async def _upload(client, data: bytes, filename: str = "facts.pdf"):
    response = await client.post("/api/rag/upload", files=_pdf_upload(data, filename))
    assert response.status_code == 200
    return await response.get_json()


class TestUpload:
    async def test_upload(self, client, three_sentence_pdf):
        body = await _upload(client, three_sentence_pdf)

        assert body["success"] is True
        assert body["data"]["filename"] == "facts.pdf"
        assert body["data"]["chunksCount"] == 1
        assert body["data"]["textLength"] > 0

    async def test_rejects_non_pdf(self, client):
        response = await client.post(
            "/api/rag/upload",
            files=_pdf_upload(b"hello", filename="notes.txt", content_type="text/plain"),
        )

        assert response.status_code == 400
        assert (await response.get_json())["success"] is False

    async def test_missing_file(self, client):
        response = await client.post("/api/rag/upload", form={"other": "value"})

        assert response.status_code == 400

    async def test_too_large(self, client, three_sentence_pdf, monkeypatch):
        monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 100)

        response = await client.post("/api/rag/upload", files=_pdf_upload(three_sentence_pdf))

        assert response.status_code == 413

    async def test_strips_directories_from_filename(self, client, service, three_sentence_pdf):
        body = await _upload(client, three_sentence_pdf, filename="../../secret/facts.pdf")

        assert body["data"]["filename"] == "facts.pdf"
        assert await service.store.get("facts.pdf") is not None


class TestSearch:
    async def test_search(self, client, three_sentence_pdf):
        await _upload(client, three_sentence_pdf)

        response = await client.post(
            "/api/rag/search", json={"query": "Eiffel Tower", "filename": "facts.pdf"}
        )
        body = await response.get_json()

        assert response.status_code == 200
        assert body["data"]["totalResults"] == 1
        assert body["data"]["query"] == "Eiffel Tower"
        result = body["data"]["results"][0]
        assert set(result) == {"text", "similarity", "metadata"}
        assert result["metadata"]["chunk_index"] == 0

    async def test_unknown_document(self, client):
        response = await client.post(
            "/api/rag/search", json={"query": "anything", "filename": "missing.pdf"}
        )
        body = await response.get_json()

        assert response.status_code == 404
        assert body["success"] is False
        assert body["error"] == "StoreNotFound"

    @pytest.mark.parametrize(
        "payload",
        [{}, {"query": "", "filename": "a.pdf"}, {"query": "q"}, {"query": "q", "filename": "a.pdf", "limit": 0}],
    )
    async def test_invalid_body(self, client, payload):
        response = await client.post("/api/rag/search", json=payload)

        assert response.status_code == 400


class TestAsk:
    async def test_ask(self, client, three_sentence_pdf):
        await _upload(client, three_sentence_pdf)

        response = await client.post(
            "/api/rag/ask",
            json={"filename": "facts.pdf", "query": "When was the Eiffel Tower completed?"},
        )
        body = await response.get_json()

        assert response.status_code == 200
        assert body["data"]["answer"] == "The Eiffel Tower was completed in 1889."
        assert len(body["data"]["references"]) == 1
        assert body["data"]["confidence"] > 0
        assert body["data"]["speaking_duration"] == 0

    async def test_ask_with_speech(self, client, avatar, three_sentence_pdf):
        await _upload(client, three_sentence_pdf)

        response = await client.post(
            "/api/rag/ask",
            json={
                "filename": "facts.pdf",
                "query": "When was the Eiffel Tower completed?",
                "speak": True,
                "session_id": "session-9",
            },
        )
        body = await response.get_json()

        assert body["data"]["speaking_duration"] == 4
        avatar.send_text.assert_awaited_once()

    async def test_unknown_document(self, client):
        response = await client.post(
            "/api/rag/ask", json={"filename": "missing.pdf", "query": "Anything?"}
        )

        assert response.status_code == 404


class TestDocuments:
    async def test_list(self, client, three_sentence_pdf):
        await _upload(client, three_sentence_pdf)

        response = await client.get("/api/rag/list")
        body = await response.get_json()

        assert body["data"]["totalCount"] == 1
        pdf = body["data"]["pdfs"][0]
        assert pdf["filename"] == "facts.pdf"
        assert pdf["chunksCount"] == 1
        assert pdf["processedAt"]

    async def test_delete(self, client, three_sentence_pdf):
        await _upload(client, three_sentence_pdf)

        response = await client.delete("/api/rag/documents/facts.pdf")
        assert response.status_code == 204

        response = await client.delete("/api/rag/documents/facts.pdf")
        assert response.status_code == 404


class TestHealth:
    async def test_live(self, client):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert (await response.get_json())["status"] == "alive"

    async def test_ready(self, client):
        response = await client.get("/health/ready")
        body = await response.get_json()

        assert response.status_code == 200
        assert body["storage"] is True
        assert body["llm"] is True
        assert body["embedding_mode"] == "provider"

    async def test_ready_when_llm_unreachable(self, client, llm):
        llm.list_models.side_effect = httpx.ConnectError("connection refused")

        response = await client.get("/health/ready")

        assert response.status_code == 503

    async def test_rag_routes_mounted(self, client):
        response = await client.get("/api/rag/test")

        assert response.status_code == 200


async def test_unknown_route(client):
    response = await client.get("/nope")

    assert response.status_code == 404
    assert (await response.get_json())["success"] is False
