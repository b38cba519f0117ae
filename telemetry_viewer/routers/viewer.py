"""Viewer API over the application's TelemetryContext."""
from __future__ import annotations

import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from telemetry_viewer.context import TelemetryContext
from telemetry_viewer.errors import SessionFetchError, SessionNotFoundError
from telemetry_viewer.models import SessionSummary, ViewerStatus
from telemetry_viewer.parsers.archive import RawSource

logger = logging.getLogger("telemetry_viewer")

viewer_router = APIRouter(prefix="/api/viewer", tags=["viewer"])


def _get_context(request: Request) -> TelemetryContext:
    context = getattr(request.app.state, "telemetry", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Telemetry context not initialized")
    return context


@viewer_router.get("/status", response_model=ViewerStatus)
async def get_status(request: Request):
    return _get_context(request).status()


@viewer_router.get("/sessions", response_model=list[SessionSummary], response_model_exclude_none=True)
async def list_sessions(request: Request):
    """Session list for the active source, newest first."""
    return list(_get_context(request).sessions)


@viewer_router.get("/sessions/{slug}")
async def get_session(slug: str, request: Request):
    """Full telemetry document, loaded once per source mode and cached."""
    context = _get_context(request)
    try:
        return await context.get_session(slug)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionFetchError as e:
        logger.warning("Session load failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))


@viewer_router.post("/upload", response_model=list[SessionSummary], response_model_exclude_none=True)
async def upload_files(request: Request, files: list[UploadFile] = File(...)):
    """Load zip bundles and/or session JSON files; switches to archive mode."""
    context = _get_context(request)
    sources: list[RawSource] = []
    for upload in files:
        sources.append(RawSource(name=upload.filename or "", data=await upload.read()))
    return await context.load_files(sources)
