"""Main Quart application for the docqa PDF question-answering service."""
import logging
from pathlib import Path
from typing import Optional

from quart import Quart, Blueprint, current_app, request, jsonify
from pydantic import BaseModel, Field, ValidationError
import httpx
import structlog

from docqa import config
from docqa.rag.errors import RAGError
from docqa.rag.service import RAGService, build_service

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

PDF_MIME_TYPE = "application/pdf"
# Room for multipart framing on top of the file itself
MULTIPART_OVERHEAD = 64 * 1024

rag_bp = Blueprint("rag", __name__, url_prefix="/api/rag")


class SearchRequest(BaseModel):
    """Body of a knowledge base search."""
    query: str = Field(..., min_length=1, max_length=2000)
    filename: str = Field(..., min_length=1)
    limit: int = Field(default=config.SEARCH_TOP_K, ge=1, le=50)


class AskRequest(BaseModel):
    """Body of a grounded question."""
    filename: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1, max_length=2000)
    speak: bool = False
    session_id: Optional[str] = None
    limit: int = Field(default=config.RETRIEVAL_TOP_K, ge=1, le=20)


def _service() -> RAGService:
    return current_app.config["RAG_SERVICE"]


def _error(message: str, status: int, error: str = None):
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return jsonify(body), status


def _rag_error(e: RAGError):
    return _error(e.message, e.status_code, type(e).__name__)


def _validation_error(e: ValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
    )
    return _error("Invalid request body", 400, details)


@rag_bp.route("/upload", methods=["POST"])
async def upload_pdf():
    """Upload a PDF and add it to the knowledge base.

    Expects multipart form data with the file in the 'pdf' field.

    Returns JSON:
    {
        "success": true,
        "data": {"filename": "...", "chunksCount": 3, "textLength": 2400}
    }
    """
    files = await request.files
    upload = files.get("pdf")

    if upload is None or not upload.filename:
        return _error("No PDF file provided", 400)

    if upload.mimetype != PDF_MIME_TYPE:
        logger.warning("upload_rejected_mime_type", mimetype=upload.mimetype)
        return _error("Only PDF files are allowed", 400)

    filename = Path(upload.filename).name
    data = upload.read()

    if len(data) > config.MAX_UPLOAD_BYTES:
        logger.warning("upload_rejected_size", filename=filename, size=len(data))
        return _error(f"File too large (max {config.MAX_UPLOAD_BYTES} bytes)", 413)

    logger.info("pdf_upload_started", filename=filename, size=len(data))

    try:
        result = await _service().ingest(filename, data)
    except RAGError as e:
        logger.error("pdf_upload_failed", filename=filename, error=e.message, error_type=type(e).__name__)
        return _error("PDF processing failed", 500, e.message)
    except Exception as e:
        logger.error("pdf_upload_failed", filename=filename, error=str(e), error_type=type(e).__name__)
        return _error("PDF processing failed", 500, str(e))

    return jsonify({
        "success": True,
        "message": "PDF processed and added to knowledge base",
        "data": {
            "filename": result.filename,
            "chunksCount": result.chunks_count,
            "textLength": result.text_length,
        },
    })


@rag_bp.route("/search", methods=["POST"])
async def search_pdf():
    """Search a document's chunks by similarity.

    Expects JSON body:
    {
        "query": "search text",
        "filename": "document.pdf",
        "limit": 5  // optional
    }
    """
    try:
        body = SearchRequest.model_validate(await request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    logger.info("pdf_search_started", filename=body.filename, query_preview=body.query[:100])

    try:
        results = await _service().search(body.query, body.filename, k=body.limit)
    except RAGError as e:
        return _rag_error(e)
    except Exception as e:
        logger.error("pdf_search_failed", error=str(e), error_type=type(e).__name__)
        return _error("PDF search failed", 500, str(e))

    return jsonify({
        "success": True,
        "message": "Search completed",
        "data": {
            "results": [r.to_dict() for r in results],
            "totalResults": len(results),
            "query": body.query,
            "filename": body.filename,
        },
    })


@rag_bp.route("/ask", methods=["POST"])
async def ask_pdf():
    """Answer a question grounded in a document.

    Expects JSON body:
    {
        "filename": "document.pdf",
        "query": "question text",
        "speak": false,          // optional, forward answer to avatar
        "session_id": "...",     // optional, avatar session
        "limit": 3               // optional
    }
    """
    try:
        body = AskRequest.model_validate(await request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    logger.info(
        "pdf_ask_started",
        filename=body.filename,
        speak=body.speak,
        query_preview=body.query[:100],
    )

    try:
        result = await _service().answer(
            body.query,
            body.filename,
            k=body.limit,
            speak=body.speak,
            session_id=body.session_id,
        )
    except RAGError as e:
        return _rag_error(e)
    except Exception as e:
        logger.error("pdf_ask_failed", error=str(e), error_type=type(e).__name__)
        return _error("Failed to answer using PDF", 500, str(e))

    return jsonify({
        "success": True,
        "message": "Question answered using RAG",
        "data": {
            "answer": result.answer,
            "references": [r.to_dict() for r in result.references],
            "confidence": result.confidence,
            "speaking_duration": result.speaking_duration,
            "query": body.query,
            "filename": body.filename,
        },
    })


@rag_bp.route("/list", methods=["GET"])
async def list_pdfs():
    """List processed documents with chunk counts and timestamps."""
    try:
        documents = await _service().list_documents()
    except Exception as e:
        logger.error("pdf_list_failed", error=str(e), error_type=type(e).__name__)
        return _error("Failed to list PDFs", 500, str(e))

    pdfs = [
        {
            "filename": d.filename,
            "chunksCount": d.chunks_count,
            "processedAt": d.processed_at,
        }
        for d in documents
    ]

    return jsonify({
        "success": True,
        "message": "PDFs retrieved successfully",
        "data": {"pdfs": pdfs, "totalCount": len(pdfs)},
    })


@rag_bp.route("/documents/<path:filename>", methods=["DELETE"])
async def delete_pdf(filename: str):
    """Delete a document from the knowledge base.

    Returns:
        204 No Content if successful
        404 Not Found if the document doesn't exist
    """
    try:
        await _service().delete(filename)
    except RAGError as e:
        return _rag_error(e)
    except OSError as e:
        logger.error("pdf_delete_failed", filename=filename, error=str(e))
        return _error("Failed to delete PDF", 500, str(e))

    return "", 204


@rag_bp.route("/test", methods=["GET"])
async def rag_test():
    """Check that the RAG routes are mounted."""
    return jsonify({"success": True, "message": "RAG service is working"})


def create_app(service: Optional[RAGService] = None) -> Quart:
    """Create the Quart application.

    Args:
        service: RAG service to serve (built from config if not provided)

    Returns:
        Configured Quart app
    """
    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES + MULTIPART_OVERHEAD
    app.config["RAG_SERVICE"] = service or build_service()

    app.register_blueprint(rag_bp)

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - check if app can serve requests.

        Checks:
        - Knowledge base directory is writable
        - Embedding mode (provider or placeholder)
        - LLM provider is reachable, when configured
        """
        rag = _service()
        store_stats = rag.store.get_stats()

        checks = {
            "status": "healthy",
            "storage": store_stats["writable"],
            "embedding_mode": rag.embedder.source,
            "llm": False,
        }

        if not store_stats["writable"]:
            checks["status"] = "unhealthy"
            checks["error"] = f"Knowledge base directory not writable: {store_stats['kb_dir']}"

        if rag.llm is not None and rag.llm.configured:
            try:
                await rag.llm.list_models()
                checks["llm"] = True
            except httpx.HTTPError as e:
                logger.error("health_check_failed", error=str(e))
                checks["status"] = "unhealthy"
                checks["error"] = str(e)

        status_code = 200 if checks["status"] == "healthy" else 503
        return jsonify(checks), status_code

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"success": False, "message": "Not found"}), 404

    @app.errorhandler(413)
    async def too_large(error):
        """Handle request bodies over MAX_CONTENT_LENGTH."""
        return jsonify({"success": False, "message": "File too large"}), 413

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return jsonify({"success": False, "message": "Internal server error"}), 500

    @app.after_serving
    async def flush_store():
        await app.config["RAG_SERVICE"].store.flush()

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
