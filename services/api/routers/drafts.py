# services/api/routers/drafts.py
from __future__ import annotations

import logging
import mimetypes
from typing import Annotated, List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from core.sessions import EditorSession, EditorSessionStore, SessionNotFound, SubmissionInProgress
from core.submission import SubmissionError, SubmissionPipeline
from core.validation import DraftValidationError
from dependencies import get_session_store, get_submission_pipeline
from models.drafts import AttachedFile, DraftNotFound
from schemas.draft import DraftOut, DraftUpdate, EditorOut, RenewalToggle
from schemas.submission import SubmissionOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drafts", tags=["drafts"])

# ---- DI aliases ----
Sessions = Annotated[EditorSessionStore, Depends(get_session_store)]
Pipeline = Annotated[SubmissionPipeline, Depends(get_submission_pipeline)]


# ====== Helpers ======

def _session(sessions: EditorSessionStore, session_id: str) -> EditorSession:
    try:
        return sessions.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


def _editable_session(sessions: EditorSessionStore, session_id: str) -> EditorSession:
    """Session for an edit; refused while its drafts are being submitted."""
    session = _session(sessions, session_id)
    if session.submitting:
        raise HTTPException(
            status_code=409,
            detail="Drafts are being submitted; edits are locked until it finishes",
        )
    return session


def _editor_out(session: EditorSession) -> EditorOut:
    editor = session.editor
    return EditorOut(
        session_id=session.session_id,
        rows=[DraftOut.from_draft(d) for d in editor.rows],
        total_files=editor.total_files(),
        submitting=session.submitting,
    )


def _guess_mime(upload: UploadFile) -> str:
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return guessed or "application/octet-stream"


# ====== Session ======

@router.post("", response_model=EditorOut, status_code=status.HTTP_201_CREATED)
async def create_session(sessions: Sessions):
    """Start a new editor with one empty draft."""
    session = sessions.create()
    return _editor_out(session)


@router.get("/{session_id}", response_model=EditorOut)
async def get_editor(session_id: str, sessions: Sessions):
    return _editor_out(_session(sessions, session_id))


# ====== Rows ======

@router.post("/{session_id}/rows", response_model=EditorOut, status_code=status.HTTP_201_CREATED)
async def add_row(session_id: str, sessions: Sessions):
    session = _editable_session(sessions, session_id)
    session.editor.add_row()
    return _editor_out(session)


@router.delete("/{session_id}/rows/{draft_id}", response_model=EditorOut)
async def remove_row(session_id: str, draft_id: str, sessions: Sessions):
    """Remove a draft. The last remaining draft is kept."""
    session = _editable_session(sessions, session_id)
    session.editor.remove_row(draft_id)
    return _editor_out(session)


@router.patch("/{session_id}/rows/{draft_id}", response_model=EditorOut)
async def update_row(session_id: str, draft_id: str, body: DraftUpdate, sessions: Sessions):
    """Apply the fields present in the body; a category change clears the entity name."""
    session = _editable_session(sessions, session_id)
    editor = session.editor
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    try:
        # Category first so an entity_name sent in the same request survives
        if "category" in changes:
            editor.set_category(draft_id, changes.pop("category"))
        for field_name, value in changes.items():
            editor.update_field(draft_id, field_name, value)
    except DraftNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return _editor_out(session)


@router.put("/{session_id}/rows/{draft_id}/renewal", response_model=EditorOut)
async def toggle_renewal(session_id: str, draft_id: str, body: RenewalToggle, sessions: Sessions):
    session = _editable_session(sessions, session_id)
    try:
        session.editor.toggle_renewal(draft_id, body.enabled)
    except DraftNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _editor_out(session)


# ====== Files ======

@router.post("/{session_id}/rows/{draft_id}/files", response_model=EditorOut)
async def add_files(
    session_id: str,
    draft_id: str,
    sessions: Sessions,
    files: List[UploadFile] = File(...),
):
    """Attach files to a draft. Files already attached (same name and size) are skipped."""
    session = _editable_session(sessions, session_id)

    attached = []
    for upload in files:
        content = await upload.read()
        attached.append(
            AttachedFile(
                name=upload.filename or "file",
                content=content,
                mime_type=_guess_mime(upload),
            )
        )

    try:
        session.editor.add_files(draft_id, attached)
    except DraftNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _editor_out(session)


@router.delete("/{session_id}/rows/{draft_id}/files/{file_index}", response_model=EditorOut)
async def remove_file(session_id: str, draft_id: str, file_index: int, sessions: Sessions):
    session = _editable_session(sessions, session_id)
    try:
        session.editor.remove_file(draft_id, file_index)
    except DraftNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _editor_out(session)


@router.delete("/{session_id}/rows/{draft_id}/files", response_model=EditorOut)
async def clear_files(session_id: str, draft_id: str, sessions: Sessions):
    session = _editable_session(sessions, session_id)
    try:
        session.editor.clear_files(draft_id)
    except DraftNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _editor_out(session)


# ====== Submit ======

@router.post("/{session_id}/submit", response_model=SubmissionOut)
async def submit(session_id: str, sessions: Sessions, pipeline: Pipeline):
    """
    Submit every draft in the session.

    On success the editor is reset to one empty draft and the client is told
    where to navigate. On failure the drafts are left as they were so the
    user can retry. Edits to the session get 409 until this returns.
    """
    session = _session(sessions, session_id)

    try:
        sessions.begin_submit(session)
    except SubmissionInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))

    try:
        result = await pipeline.submit(session.editor.snapshot())
    except DraftValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": str(e), "problems": e.problems},
        )
    except SubmissionError as e:
        logger.error(f"❌ Submission error: {e}")
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "drafts_committed": e.drafts_committed},
        )
    finally:
        sessions.end_submit(session)

    session.editor.reset()
    logger.info(f"✅ {result.message} Serials: {', '.join(result.serials)}")

    return SubmissionOut(
        message=result.message,
        drafts_submitted=result.drafts_submitted,
        files_attached=result.files_attached,
        uploads_succeeded=result.uploads_succeeded,
        uploads_attempted=result.uploads_attempted,
        serials=result.serials,
        timestamp=result.timestamp,
        counters_persisted=result.counters_persisted,
        redirect_to=result.redirect_to,
        redirect_delay_ms=result.redirect_delay_ms,
    )
