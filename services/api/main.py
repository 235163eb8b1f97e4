"""
Document Register - Backend API
FastAPI service that registers documents (metadata + images) into the
Documents sheet, either through the Apps Script endpoint, directly through
Google Sheets/Drive, or into a local SQLite file.

Install dependencies:
pip install -e ".[test]"

Run server (from services/api):
uvicorn main:app --host 0.0.0.0 --port 8000
"""

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import contextvars
import logging
import os
import time
import uuid

from adapters.base import DocumentStore
from core.sessions import EditorSessionStore
from dependencies import get_session_store, get_storage_adapter
from settings import get_settings

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default='-')


class RequestIdFilter(logging.Filter):
    """Stamp every log record with the id of the request being served."""

    def filter(self, record):
        record.request_id = request_id_var.get()
        return True


_handler = logging.StreamHandler()
_handler.addFilter(RequestIdFilter())
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
    handlers=[_handler],
)
logger = logging.getLogger(__name__)

settings = get_settings()
STORAGE_BACKEND = settings.storage_backend.lower()
VERSION = "1.0"

# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="Document Register API",
    description="Register documents and their images into a spreadsheet-backed store",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# ========== Request Tracing Middleware ==========
@app.middleware("http")
async def request_tracing_middleware(request, call_next):
    """Tag the request with an id (reused from X-Request-ID if the client sent one) and log its latency."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
    token = request_id_var.set(request_id)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_var.reset(token)


ALLOWED_ORIGINS = settings.get_origins_list()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )

# ============================================================================
# ENDPOINTS
# ============================================================================
@app.get("/health")
async def health_check(
    store: DocumentStore = Depends(get_storage_adapter),
    sessions: EditorSessionStore = Depends(get_session_store),
):
    """Health check endpoint: can we reach the storage backend?"""
    try:
        await store.ping()
        return {
            "status": "healthy",
            "backend": store.backend_name,
            "sessions": len(sessions),
            "version": VERSION,
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "backend": STORAGE_BACKEND, "error": str(e)}
        )


@app.get("/healthz")
async def healthz():
    """
    Liveness probe.
    Returns 200 if the process is up; does not touch the backend.
    """
    return {
        "status": "ok",
        "timestamp": time.time(),
        "version": VERSION,
    }


@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "message": "Document Register API",
        "version": VERSION,
        "backend": STORAGE_BACKEND,
        "status": "running",
        "docs": "/docs"
    }


from routers import drafts as drafts_router
app.include_router(drafts_router.router)

from routers import master as master_router
app.include_router(master_router.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Document Register API starting up...")
    logger.info(f"Storage Backend: {STORAGE_BACKEND.upper()}")
    if STORAGE_BACKEND == "sqlite":
        logger.info(f"Database: {settings.db_url.split('://')[0]}")
    elif STORAGE_BACKEND == "sheets":
        logger.info(f"Spreadsheet ID: {settings.sheets_spreadsheet_id}")
    logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Document Register API shutting down...")

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
