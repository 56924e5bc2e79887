#!/usr/bin/env python
"""Validate setup - check dependencies, configuration and providers."""
import sys
import asyncio
import os
from pathlib import Path

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("docqa - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 11):
        print_success("Python version >= 3.11")
    else:
        print_error("Python version < 3.11 (required for asyncio.timeout)")
        errors.append("Python version too old")

    # Check if in venv
    in_venv = hasattr(sys, 'real_prefix') or (hasattr(sys, 'base_prefix') and sys.base_prefix != sys.prefix)
    if in_venv:
        print_success("Running in virtual environment")
    else:
        print_warning("Not running in virtual environment (recommended)")
        warnings.append("Not in venv")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("quart", "Quart web framework"),
        ("hypercorn", "Hypercorn ASGI server"),
        ("httpx", "HTTP client"),
        ("pypdf", "PDF parser"),
        ("numpy", "Vector math"),
        ("pydantic", "Data validation"),
        ("structlog", "Structured logging"),
        ("dotenv", "Environment loading"),
        ("pytest", "Testing framework"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Test configuration
    print_section("3. Configuration")

    try:
        # Add parent directory to path to import docqa
        sys.path.insert(0, str(Path(__file__).parent.parent))
        from docqa import config

        print_success(f"Config loaded successfully")
        print_info(f"  Chat model: {config.CHAT_MODEL}")
        print_info(f"  Embedding model: {config.EMBEDDING_MODEL} ({config.EMBEDDING_DIMENSION} dims)")
        print_info(f"  Provider URL: {config.OPENAI_BASE_URL}")
        print_info(f"  Chunking: {config.CHUNK_MODE}, {config.CHUNK_SIZE} chars")
        print_info(f"  Knowledge base: {config.KB_DIR}")

        config.KB_DIR.mkdir(parents=True, exist_ok=True)
        if os.access(config.KB_DIR, os.W_OK):
            print_success(f"Knowledge base directory writable: {config.KB_DIR}")
        else:
            print_error(f"Knowledge base directory not writable: {config.KB_DIR}")
            errors.append("Knowledge base directory not writable")

        if not config.OPENAI_API_KEY:
            if config.EMBEDDING_FALLBACK:
                print_warning("OPENAI_API_KEY not set - placeholder embeddings, extractive answers")
                warnings.append("Embedding provider not configured")
            else:
                print_error("OPENAI_API_KEY not set and EMBEDDING_FALLBACK disabled")
                errors.append("Embedding provider not configured")

        if not config.HEYGEN_APIKEY:
            print_warning("HEYGEN_APIKEY not set - spoken answers disabled")
            warnings.append("Avatar provider not configured")

    except (ImportError, OSError, ValueError) as e:
        print_error(f"Failed to load config: {e}")
        errors.append("Config loading failed")
        return errors, warnings

    # 4. Test embedding provider
    print_section("4. Embedding Provider")

    if config.OPENAI_API_KEY:
        from docqa.rag.embeddings import EmbeddingClient
        from docqa.rag.errors import EmbeddingUnavailable

        try:
            vector = await EmbeddingClient().embed("test")
            print_success(f"Embedding API working (dimension: {len(vector)})")
        except EmbeddingUnavailable as e:
            print_error(f"Embedding API test failed: {e}")
            errors.append(f"Embedding API failed: {e}")
    else:
        print_info("Skipped (no API key)")

    # 5. Summary
    print_section("Summary")

    if not errors:
        print_success(f"All checks passed! ✨")
        print_info(f"  Start the API with: hypercorn docqa.main:app")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
