"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- PDF text extraction with layered fallbacks
- Sentence-aware and fixed-window chunking
- Embedding generation
- JSON-backed knowledge store
- Cosine-similarity search
- The ingestion and answering service
"""
