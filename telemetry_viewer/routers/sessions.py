"""Session service API: list recorded sessions and serve full documents."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

from telemetry_viewer.models import SessionSummary
from telemetry_viewer.session_index import SessionIndex

logger = logging.getLogger("telemetry_viewer.index")

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _get_session_index(request: Request) -> SessionIndex:
    index = getattr(request.app.state, "session_index", None)
    if index is None or not index.configured:
        raise HTTPException(status_code=503, detail="TELEMETRY_DIR not configured")
    return index


@sessions_router.get("", response_model=list[SessionSummary], response_model_exclude_none=True)
async def list_sessions(request: Request):
    """List every session with at least one timed lap, newest first."""
    return await _get_session_index(request).list_sessions()


@sessions_router.get("/{slug}")
async def get_session(slug: str, request: Request):
    """Return the raw telemetry JSON for one session."""
    path = await _get_session_index(request).resolve_path(slug)
    if path is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return FileResponse(path, media_type="application/json")
