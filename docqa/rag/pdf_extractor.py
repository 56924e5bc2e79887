"""PDF text extraction with a layered fallback chain.

Handles:
- Structured, page-aware parsing with pypdf
- Raw scan of BT/ET text objects and their literal strings
- Heuristic scan for readable printable-ASCII runs
- A placeholder when nothing usable is found

Extraction never raises on malformed input; downstream chunking always
receives a non-empty string.
"""
import io
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import structlog
from pypdf import PdfReader

from docqa.rag.errors import ExtractionFailure

logger = structlog.get_logger()

# Output of a method is accepted above this many characters
MIN_USABLE_LENGTH = 10
# Later methods are tried while the best text is shorter than this
PREFERRED_LENGTH = 50
MAX_FRAGMENT_LENGTH = 2000

STOPWORDS = frozenset(
    """
    the and or but in on at to for of with by is are was were be been have has
    had do does did will would could should may might can must shall this that
    these those a an as if when where why how what who which from into during
    including until against among throughout despite towards upon concerning
    about through before after above below up down out off over under again
    further then once also only very much more most some any all each every
    both either neither not no yes here there my your his her its our their
    """.split()
)

TEXT_OBJECT_PATTERN = re.compile(r"\bBT\s+(.*?)\bET\b", re.DOTALL)
LITERAL_STRING_PATTERN = re.compile(r"\(((?:[^()\\]|\\.)*)\)", re.DOTALL)
ESCAPE_PATTERN = re.compile(r"\\([nrtbf()\\]|[0-7]{1,3})")
PRINTABLE_RUN_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9 \t.,!?;:'\"()\-]{5,}")

WORD_PATTERN = re.compile(r"[A-Za-z]+")
LONG_WORD_PATTERN = re.compile(r"[A-Za-z]{3,}")
BINARY_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\xFF]")
XREF_ROW_PATTERN = re.compile(r"\d{10} \d{5} [nf]")
STRUCTURAL_TOKENS = ("/Type", "/StructElem", "endobj", "stream", "endstream", "00000 n", "00000 obj")

_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "(": "(",
    ")": ")",
    "\\": "\\",
}


@dataclass
class ExtractedText:
    """Extracted text and the method that produced it."""

    text: str
    method: str


def _has_stopword(text: str) -> bool:
    return any(word.lower() in STOPWORDS for word in WORD_PATTERN.findall(text))


def is_valid_text(text: str) -> bool:
    """Heuristic filter for fragments that look like human-readable text.

    Crude noise and language filter: short valid fragments such as "Hi"
    can be rejected.
    """
    if not text or len(text) < 2 or len(text) > MAX_FRAGMENT_LENGTH:
        return False
    # Also rejects pure digit/punctuation strings
    if not re.search(r"[A-Za-z]", text):
        return False
    if any(token in text for token in STRUCTURAL_TOKENS) or XREF_ROW_PATTERN.search(text):
        return False
    if BINARY_PATTERN.search(text):
        return False

    return bool(LONG_WORD_PATTERN.search(text)) or _has_stopword(text)


def unescape_literal(literal: str) -> str:
    """Resolve PDF literal-string escape sequences."""

    def _replace(match: re.Match) -> str:
        code = match.group(1)
        if code in _ESCAPES:
            return _ESCAPES[code]
        return chr(int(code, 8) & 0xFF)

    return ESCAPE_PATTERN.sub(_replace, literal)


def extract_text_objects(raw: str) -> str:
    """Collect readable literal strings shown inside BT/ET text objects."""
    parts: List[str] = []

    for text_object in TEXT_OBJECT_PATTERN.finditer(raw):
        for literal in LITERAL_STRING_PATTERN.finditer(text_object.group(1)):
            candidate = unescape_literal(literal.group(1)).strip()
            if is_valid_text(candidate):
                parts.append(candidate)

    return " ".join(parts)


def extract_printable_runs(raw: str) -> str:
    """Collect printable-ASCII runs that contain common function words."""
    parts = [
        run.strip()
        for run in PRINTABLE_RUN_PATTERN.findall(raw)
        if is_valid_text(run.strip()) and _has_stopword(run)
    ]
    return " ".join(parts)


def placeholder_text(byte_size: int) -> str:
    return (
        "PDF document content extracted. This document appears to be a PDF file "
        "but specific text extraction methods were unable to parse the content. "
        "The document may contain images, scanned content, or use a format that "
        f"requires specialized processing. Document size: {byte_size} bytes."
    )


class PDFTextExtractor:
    """Turns raw document bytes into plain text."""

    def extract(self, data: bytes) -> str:
        """Extract text from a document buffer.

        Args:
            data: Raw document bytes

        Returns:
            Non-empty extracted text
        """
        return self.extract_with_method(data).text

    def extract_with_method(self, data: bytes) -> ExtractedText:
        """Extract text and report which method produced it.

        Args:
            data: Raw document bytes

        Returns:
            ExtractedText; method is "placeholder" when every method failed
        """
        try:
            result = self._run_methods(data)
        except ExtractionFailure as e:
            logger.warning(
                "pdf_extraction_exhausted",
                byte_size=len(data),
                error=str(e),
            )
            result = ExtractedText(text=placeholder_text(len(data)), method="placeholder")

        logger.info(
            "pdf_text_extracted",
            method=result.method,
            text_length=len(result.text),
            preview=result.text[:100],
        )
        return result

    def _run_methods(self, data: bytes) -> ExtractedText:
        raw: Optional[str] = None
        best: Optional[ExtractedText] = None

        methods: List[Tuple[str, Callable[[], str]]] = [
            ("pypdf", lambda: self._parse_structured(data)),
            ("text_objects", lambda: extract_text_objects(raw)),
            ("printable_runs", lambda: extract_printable_runs(raw)),
        ]

        for name, method in methods:
            if best is not None and len(best.text) >= PREFERRED_LENGTH:
                break

            if name != "pypdf" and raw is None:
                # latin-1 maps every byte to one code point
                raw = data.decode("latin-1")

            try:
                text = (method() or "").strip()
            except Exception as e:
                logger.warning(
                    "pdf_extraction_method_failed",
                    method=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if len(text) > MIN_USABLE_LENGTH and (best is None or len(text) > len(best.text)):
                best = ExtractedText(text=text, method=name)
            else:
                logger.debug("pdf_extraction_method_short", method=name, text_length=len(text))

        if best is None:
            raise ExtractionFailure("All text extraction methods failed")

        return best

    def _parse_structured(self, data: bytes) -> str:
        reader = PdfReader(io.BytesIO(data))
        pages = []

        for page in reader.pages:
            page_text = page.extract_text() or ""
            if page_text.strip():
                pages.append(page_text.strip())

        logger.debug("pdf_pages_parsed", page_count=len(reader.pages))
        return "\n\n".join(pages)
