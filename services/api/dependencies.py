"""
Shared FastAPI dependencies: the storage adapter and the editor sessions.
"""
import logging
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from fastapi import Depends

from adapters.base import DocumentStore
from core.sessions import EditorSessionStore
from core.submission import SubmissionPipeline
from settings import get_settings

logger = logging.getLogger(__name__)

_storage_adapter: Optional[DocumentStore] = None
_session_store: Optional[EditorSessionStore] = None


def build_storage_adapter() -> DocumentStore:
    """Create the adapter selected by STORAGE_BACKEND."""
    settings = get_settings()
    backend = settings.storage_backend.lower()
    logger.info(f"🔧 Storage Backend: {backend.upper()}")

    if backend == "script":
        from adapters.script import ScriptAdapter

        return ScriptAdapter(
            settings.script_url,
            timeout=settings.script_timeout_seconds,
            documents_sheet=settings.documents_sheet_name,
            master_sheet=settings.master_sheet_name,
        )

    if backend == "sheets":
        from adapters.sheets import SheetsAdapter

        return SheetsAdapter(
            google_sa_json=settings.resolved_google_sa_json(),
            spreadsheet_id=settings.sheets_spreadsheet_id,
            master_sheet=settings.master_sheet_name,
            documents_sheet=settings.documents_sheet_name,
            serials_sheet=settings.serials_sheet_name,
        )

    if backend == "sqlite":
        from adapters.sqlite import SqliteAdapter

        return SqliteAdapter.from_url(settings.db_url, data_dir=settings.data_dir)

    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def get_storage_adapter() -> DocumentStore:
    global _storage_adapter
    if _storage_adapter is None:
        try:
            _storage_adapter = build_storage_adapter()
        except Exception as e:
            logger.error(f"✗ Failed to initialize storage backend: {e}")
            raise
    return _storage_adapter


def get_session_store() -> EditorSessionStore:
    global _session_store
    if _session_store is None:
        settings = get_settings()
        _session_store = EditorSessionStore(
            maxsize=settings.max_sessions,
            ttl=settings.session_ttl_seconds,
        )
    return _session_store


def batch_clock() -> Callable[[], datetime]:
    """Clock for row timestamps: TIMEZONE if configured, else server local time."""
    tz_name = get_settings().timezone
    if not tz_name:
        return datetime.now
    tz = ZoneInfo(tz_name)
    return lambda: datetime.now(tz)


def get_submission_pipeline(
    store: DocumentStore = Depends(get_storage_adapter),
) -> SubmissionPipeline:
    settings = get_settings()
    return SubmissionPipeline(
        store,
        folder_id=settings.upload_folder_id,
        clock=batch_clock(),
        redirect_to=settings.redirect_path,
        redirect_delay_ms=settings.redirect_delay_ms,
    )
