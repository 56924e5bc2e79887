#!/usr/bin/env python
"""Ingest PDF files into the knowledge base.

Usage:
    python scripts/ingest_pdfs.py docs/               # Ingest new PDFs in a directory
    python scripts/ingest_pdfs.py a.pdf b.pdf         # Ingest specific files
    python scripts/ingest_pdfs.py docs/ --replace     # Re-ingest already stored PDFs
"""
import argparse
import asyncio
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docqa import config
from docqa.rag.errors import RAGError
from docqa.rag.service import build_service
import structlog

logger = structlog.get_logger()


@dataclass
class IngestRun:
    """Outcome counters for one invocation."""

    ingested: int = 0
    skipped: int = 0
    chunks: int = 0
    failed: List[Path] = field(default_factory=list)

    def summary(self, elapsed: float) -> str:
        lines = [
            f"Ingested {self.ingested} PDF(s) into {self.chunks} chunk(s) in {elapsed:.1f}s",
            f"Skipped {self.skipped} PDF(s) already in the knowledge base",
        ]
        if self.failed:
            lines.append(f"Failed {len(self.failed)}: " + ", ".join(p.name for p in self.failed))
        return "\n".join(lines)


def discover_pdfs(paths: List[Path]) -> List[Path]:
    """Expand directories into the PDF files they contain.

    Raises:
        FileNotFoundError: If a path doesn't exist
    """
    pdfs = []
    for path in paths:
        if not path.exists():
            raise FileNotFoundError(f"Path not found: {path}")
        if path.is_dir():
            pdfs.extend(sorted(path.rglob("*.pdf")))
        else:
            pdfs.append(path)
    return pdfs


async def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Ingest PDF files into the knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest_pdfs.py docs/               # Ingest new PDFs
  python scripts/ingest_pdfs.py docs/ --replace     # Re-ingest everything
  python scripts/ingest_pdfs.py report.pdf -v       # Show chunk counts per file
        """,
    )

    parser.add_argument("paths", nargs="+", type=Path, help="PDF files or directories")

    parser.add_argument(
        "--replace",
        action="store_true",
        help="Re-ingest documents that are already in the knowledge base",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show per-file chunk counts",
    )

    parser.add_argument(
        "--kb-dir",
        type=Path,
        default=None,
        help=f"Knowledge base directory (default: {config.KB_DIR})",
    )

    args = parser.parse_args()
    run = IngestRun()

    try:
        pdfs = discover_pdfs(args.paths)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Knowledge base: {args.kb_dir or config.KB_DIR}")
    print(f"Embedding model: {config.EMBEDDING_MODEL} | chunking: {config.CHUNK_MODE}, {config.CHUNK_SIZE} chars")

    service = build_service(kb_dir=args.kb_dir)
    known = {d.filename for d in await service.list_documents()}
    started = time.monotonic()

    try:
        for idx, pdf_path in enumerate(pdfs, 1):
            prefix = f"[{idx}/{len(pdfs)}] {pdf_path.name}"

            if pdf_path.name in known and not args.replace:
                run.skipped += 1
                if args.verbose:
                    print(f"{prefix}: skipped")
                continue

            try:
                result = await service.ingest(pdf_path.name, pdf_path.read_bytes())
            except (RAGError, OSError) as e:
                logger.error("pdf_ingest_failed", path=str(pdf_path), error=str(e))
                run.failed.append(pdf_path)
                print(f"{prefix}: failed")
                continue

            run.ingested += 1
            run.chunks += result.chunks_count
            print(f"{prefix}: {result.chunks_count} chunk(s)" if args.verbose else prefix)
    except KeyboardInterrupt:
        print("Ingestion cancelled", file=sys.stderr)
        sys.exit(1)
    finally:
        await service.store.flush()

    print(run.summary(time.monotonic() - started))

    if run.failed:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
