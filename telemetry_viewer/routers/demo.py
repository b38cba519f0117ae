"""Static demo bundle: a ``sessions.json`` manifest plus one file per slug."""
from __future__ import annotations

import re
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from telemetry_viewer import config

demo_router = APIRouter(prefix="/demo", tags=["demo"])

MANIFEST_NAME = "sessions.json"
_SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def _demo_file(name: str) -> Path:
    path = config.DEMO_DIR / name
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return path


@demo_router.get("/sessions.json")
def get_manifest():
    return FileResponse(_demo_file(MANIFEST_NAME), media_type="application/json")


@demo_router.get("/{slug}.json")
def get_demo_session(slug: str):
    if not _SLUG_PATTERN.match(slug):
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(_demo_file(f"{slug}.json"), media_type="application/json")
