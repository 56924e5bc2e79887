"""Tests for the two-tier knowledge store."""
import asyncio
import json

from docqa.rag.models import Chunk, EntryMetadata, KnowledgeBaseEntry
from docqa.rag.store import KnowledgeStore


def _entry(filename: str, text: str = "Some chunk text.") -> KnowledgeBaseEntry:
    return KnowledgeBaseEntry(
        filename=filename,
        chunks=[
            Chunk(chunk_index=0, text=text, embedding=[0.1, 0.2, 0.3], processed=True,
                  embedding_source="provider"),
            Chunk(chunk_index=1, text="Unembedded chunk.", embedding=None, processed=False),
        ],
        original_text=text + " Unembedded chunk.",
        metadata=EntryMetadata(
            processed_at="2026-03-04T05:06:07+00:00",
            total_chunks=2,
            text_length=len(text) + 18,
            byte_size=1234,
            extraction_method="pypdf",
            chunk_mode="sentence",
            embedding_model="test-model",
            embedding_dimension=3,
        ),
    )


async def test_put_then_get_returns_same_entry(store):
    entry = _entry("a.pdf")

    await store.put("a.pdf", entry)

    assert await store.get("a.pdf") is entry


async def test_get_unknown_is_none(store):
    assert await store.get("missing.pdf") is None


async def test_entry_survives_reload(store):
    entry = _entry("report.pdf")
    await store.put("report.pdf", entry)
    await store.flush()

    reloaded = await KnowledgeStore(kb_dir=store.kb_dir).get("report.pdf")

    assert reloaded == entry


async def test_record_is_json_named_after_filename(store):
    await store.put("report.pdf", _entry("report.pdf"))
    await store.flush()

    path = store.path_for("report.pdf")
    data = json.loads(path.read_text(encoding="utf-8"))

    assert path.name == "report.pdf.json"
    assert data["filename"] == "report.pdf"
    assert data["metadata"]["total_chunks"] == 2


async def test_unsafe_filenames_stay_inside_kb_dir(store):
    path = store.path_for("../../etc/passwd")

    assert path.parent == store.kb_dir
    assert KnowledgeStore.filename_from_path(path) == "../../etc/passwd"


async def test_latest_put_wins(store):
    await store.put("doc.pdf", _entry("doc.pdf", "First version."))
    await store.put("doc.pdf", _entry("doc.pdf", "Second version."))
    await store.flush()

    reloaded = await KnowledgeStore(kb_dir=store.kb_dir).get("doc.pdf")

    assert reloaded.chunks[0].text == "Second version."


async def test_concurrent_puts_for_different_documents(store):
    names = [f"doc-{i}.pdf" for i in range(10)]

    await asyncio.gather(*(store.put(n, _entry(n)) for n in names))
    await store.flush()

    fresh = KnowledgeStore(kb_dir=store.kb_dir)
    for name in names:
        assert (await fresh.get(name)).filename == name


async def test_list_merges_memory_and_disk(store):
    await store.put("on-disk.pdf", _entry("on-disk.pdf"))
    await store.flush()

    other = KnowledgeStore(kb_dir=store.kb_dir)
    await other.put("in-memory.pdf", _entry("in-memory.pdf"))
    await other.get("on-disk.pdf")

    summaries = await other.list()
    await other.flush()

    assert sorted(s.filename for s in summaries) == ["in-memory.pdf", "on-disk.pdf"]
    assert all(s.chunks_count == 2 for s in summaries)
    assert all(s.processed_at == "2026-03-04T05:06:07+00:00" for s in summaries)


async def test_corrupt_record(store):
    store.path_for("broken.pdf").write_text("{not json", encoding="utf-8")

    assert await store.get("broken.pdf") is None

    summaries = await store.list()
    assert [(s.filename, s.chunks_count) for s in summaries] == [("broken.pdf", None)]


async def test_delete(store):
    await store.put("doc.pdf", _entry("doc.pdf"))
    await store.flush()

    assert await store.delete("doc.pdf") is True
    assert await store.get("doc.pdf") is None
    assert not store.path_for("doc.pdf").exists()
    assert await store.delete("doc.pdf") is False


async def test_delete_before_persist_leaves_nothing_on_disk(store):
    await store.put("doc.pdf", _entry("doc.pdf"))
    await store.delete("doc.pdf")
    await store.flush()

    assert not store.path_for("doc.pdf").exists()


async def test_persist_failure_keeps_memory_entry(store, monkeypatch):
    def fail_write(path, data):
        raise OSError("disk full")

    monkeypatch.setattr(store, "_write_record", fail_write)
    entry = _entry("doc.pdf")

    await store.put("doc.pdf", entry)
    await store.flush()

    assert await store.get("doc.pdf") is entry
    assert not store.path_for("doc.pdf").exists()


async def test_stats(store):
    await store.put("doc.pdf", _entry("doc.pdf"))

    stats = store.get_stats()

    assert stats["cached_entries"] == 1
    assert stats["cached_chunks"] == 2
    assert stats["writable"] is True
