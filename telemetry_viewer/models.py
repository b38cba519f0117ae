"""Pydantic models matching the frontend TypeScript types."""
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

LapIndicator = Literal["valid", "invalid", "best"]

# Full telemetry documents are large and only ever replaced wholesale, so they
# stay as decoded JSON rather than a model.
TelemetryDocument = dict[str, Any]


class FilenameMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessionType: str
    track: str
    date: str  # YYYY-MM-DDTHH:mm:ss, local time


class SessionSummary(BaseModel):
    """Lightweight list entry for one recorded session.

    Returned by ``GET /api/sessions`` and by the demo manifest. Optional
    fields are omitted from JSON when unset.
    """

    model_config = ConfigDict(frozen=True)

    relativePath: str
    slug: str
    sessionType: str
    track: str
    date: str
    validLapCount: int = 0
    lapIndicators: Optional[tuple[LapIndicator, ...]] = None
    bestLapTime: Optional[str] = None
    bestLapTimeMs: Optional[int] = None
    aiDifficulty: Optional[int] = None
    isSpectator: Optional[bool] = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ViewerStatus(BaseModel):
    mode: str
    sessionsLoading: bool = False
    filesLoading: bool = False
    sessionCount: int = 0
    cachedSessionCount: int = 0
