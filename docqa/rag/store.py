"""Knowledge store for processed documents.

Handles:
- In-memory cache of knowledge base entries, keyed by filename
- JSON persistence, one file per document
- Lazy loading from disk on cache miss
- Listing and deletion

Writes go to memory first and are persisted in the background; if a write
fails the in-memory entry stays authoritative for the life of the process.
"""
import asyncio
import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Set, Any
from urllib.parse import quote, unquote
import structlog

from docqa import config
from docqa.rag.models import KnowledgeBaseEntry, DocumentSummary

logger = structlog.get_logger()

RECORD_SUFFIX = ".json"


class KnowledgeStore:
    """Two-tier (memory, then disk) store of knowledge base entries."""

    def __init__(self, kb_dir: Path = None):
        """Initialize the knowledge store.

        Args:
            kb_dir: Directory for persisted entries (default: config.KB_DIR)
        """
        self.kb_dir = Path(kb_dir or config.KB_DIR)

        self._entries: Dict[str, KnowledgeBaseEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Set[asyncio.Task] = set()

        try:
            self.kb_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # Entries stay memory-only until the directory becomes writable
            logger.error("kb_dir_create_failed", kb_dir=str(self.kb_dir), error=str(e))

        logger.info("knowledge_store_initialized", kb_dir=str(self.kb_dir))

    def _lock_for(self, filename: str) -> asyncio.Lock:
        lock = self._locks.get(filename)
        if lock is None:
            lock = self._locks[filename] = asyncio.Lock()
        return lock

    def path_for(self, filename: str) -> Path:
        """Disk location of a document's record.

        Filenames are percent-encoded so any name is one safe path component.
        """
        return self.kb_dir / f"{quote(filename, safe='')}{RECORD_SUFFIX}"

    @staticmethod
    def filename_from_path(path: Path) -> str:
        return unquote(path.name[: -len(RECORD_SUFFIX)])

    async def put(self, filename: str, entry: KnowledgeBaseEntry) -> None:
        """Store an entry, replacing any previous entry for the filename.

        Args:
            filename: Document key
            entry: Complete knowledge base entry
        """
        async with self._lock_for(filename):
            self._entries[filename] = entry

        task = asyncio.create_task(self._persist(filename, entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        logger.info(
            "knowledge_entry_stored",
            filename=filename,
            chunk_count=len(entry.chunks),
        )

    async def get(self, filename: str) -> Optional[KnowledgeBaseEntry]:
        """Get an entry from memory, falling back to disk.

        Args:
            filename: Document key

        Returns:
            The entry, or None if the document is unknown or unreadable
        """
        entry = self._entries.get(filename)
        if entry is not None:
            return entry

        async with self._lock_for(filename):
            # Another task may have loaded it while we waited
            entry = self._entries.get(filename)
            if entry is not None:
                return entry

            path = self.path_for(filename)
            if not path.exists():
                return None

            try:
                data = await asyncio.to_thread(self._read_record, path)
                entry = KnowledgeBaseEntry.from_dict(data)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error(
                    "knowledge_entry_load_failed",
                    filename=filename,
                    path=str(path),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None

            self._entries[filename] = entry

        logger.info("knowledge_entry_loaded", filename=filename, path=str(path))
        return entry

    async def delete(self, filename: str) -> bool:
        """Remove an entry from memory and disk.

        Args:
            filename: Document key

        Returns:
            True if anything was removed

        Raises:
            OSError: If the record exists on disk but cannot be removed
        """
        async with self._lock_for(filename):
            removed = self._entries.pop(filename, None) is not None

            path = self.path_for(filename)
            if path.exists():
                await asyncio.to_thread(path.unlink)
                removed = True

        logger.info("knowledge_entry_deleted", filename=filename, removed=removed)
        return removed

    async def list(self) -> List[DocumentSummary]:
        """List known documents from memory and disk, deduplicated by filename."""
        summaries = {
            filename: DocumentSummary(
                filename=filename,
                chunks_count=len(entry.chunks),
                processed_at=entry.metadata.processed_at,
            )
            for filename, entry in self._entries.items()
        }

        for path in await asyncio.to_thread(self._record_paths):
            filename = self.filename_from_path(path)
            if filename in summaries:
                continue

            try:
                data = await asyncio.to_thread(self._read_record, path)
                metadata = data.get("metadata", {})
                summaries[filename] = DocumentSummary(
                    filename=filename,
                    chunks_count=metadata.get("total_chunks"),
                    processed_at=metadata.get("processed_at"),
                )
            except (OSError, ValueError) as e:
                logger.warning("knowledge_record_unreadable", path=str(path), error=str(e))
                summaries[filename] = DocumentSummary(filename=filename)

        return list(summaries.values())

    async def flush(self) -> None:
        """Wait for all scheduled writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the store."""
        return {
            "kb_dir": str(self.kb_dir),
            "cached_entries": len(self._entries),
            "cached_chunks": sum(len(e.chunks) for e in self._entries.values()),
            "pending_writes": len(self._pending),
            "writable": os.access(self.kb_dir, os.W_OK) if self.kb_dir.exists() else False,
        }

    async def _persist(self, filename: str, entry: KnowledgeBaseEntry) -> None:
        async with self._lock_for(filename):
            # Superseded by a newer put, or deleted
            if self._entries.get(filename) is not entry:
                return

            path = self.path_for(filename)
            try:
                await asyncio.to_thread(self._write_record, path, entry.to_dict())
            except (OSError, TypeError, ValueError) as e:
                logger.error(
                    "knowledge_entry_persist_failed",
                    filename=filename,
                    path=str(path),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return

        logger.info("knowledge_entry_persisted", filename=filename, path=str(path))

    def _record_paths(self) -> List[Path]:
        if not self.kb_dir.exists():
            return []
        return sorted(self.kb_dir.glob(f"*{RECORD_SUFFIX}"))

    @staticmethod
    def _read_record(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_record(self, path: Path, data: Dict[str, Any]) -> None:
        self.kb_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)

        os.replace(tmp_path, path)
