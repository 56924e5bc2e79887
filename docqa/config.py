"""Application configuration with sensible defaults."""
import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Paths
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(Path(tempfile.gettempdir()) / "uploads")))
KB_DIR = Path(os.getenv("KB_DIR", str(UPLOAD_DIR / "knowledge_base")))

# OpenAI-compatible provider (chat + embeddings)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "1536"))

# Placeholder vectors when no embedding provider is configured
EMBEDDING_FALLBACK = _env_flag("EMBEDDING_FALLBACK", "true")
EMBEDDING_CONCURRENCY = int(os.getenv("EMBEDDING_CONCURRENCY", "5"))
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "30.0"))

# Answer generation
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60.0"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "350"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))

# Avatar streaming provider (only the "speak text" task is used here)
HEYGEN_APIKEY = os.getenv("HEYGEN_APIKEY", "")
HEYGEN_SERVER_URL = os.getenv("HEYGEN_SERVER_URL", "https://api.heygen.com")
AVATAR_TIMEOUT = float(os.getenv("AVATAR_TIMEOUT", "10.0"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))      # window mode only
CHUNK_MODE = os.getenv("CHUNK_MODE", "sentence")            # "sentence" or "window"
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "3"))
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "5"))

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
