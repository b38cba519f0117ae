"""Filename parsing for recorded telemetry sessions.

Pattern: ``[SessionType]_[Track]_[YYYY]_[MM]_[DD]_[HH]_[mm]_[ss].json``
where multi-word session types are serialized with underscores
(``Short_Qualifying``, ``One_Shot_Qualifying``, ``Time_Trial``).
"""
from __future__ import annotations

import re

from telemetry_viewer.models import FilenameMetadata

DOCUMENT_EXTENSION = ".json"
UNKNOWN_TRACK = "Unknown"
QUALIFYING_SESSION_TYPES = frozenset({"Short Qualifying", "One Shot Qualifying"})

_SEPARATOR_PATTERN = re.compile(r"[\\/]")
_DATE_SEGMENT_COUNT = 6


def base_name(filepath: str) -> str:
    """Return the file name without directories and the document extension."""
    name = _SEPARATOR_PATTERN.split(filepath or "")[-1]
    if name.endswith(DOCUMENT_EXTENSION):
        return name[: -len(DOCUMENT_EXTENSION)]
    return name


def to_slug(filepath: str) -> str:
    """Convert a telemetry filename to a URL-safe slug."""
    return base_name(filepath).lower().replace("_", "-")


def _segment(parts: list[str], index: int) -> str | None:
    return parts[index] if 0 <= index < len(parts) else None


def parse_filename(filepath: str) -> FilenameMetadata:
    """Parse a telemetry filename into session type, track and local timestamp.

    Never raises: unknown prefixes fall through to ``<Type>_<Track>`` and
    missing segments render as empty strings (or ``Unknown`` for the track).
    """
    parts = base_name(filepath).split("_")

    # Last six parts are always the datetime
    date_parts = parts[-_DATE_SEGMENT_COUNT:]
    date_parts += [""] * (_DATE_SEGMENT_COUNT - len(date_parts))
    date = "{}-{}-{}T{}:{}:{}".format(*date_parts)

    prefix = parts[:-_DATE_SEGMENT_COUNT] if len(parts) > _DATE_SEGMENT_COUNT else []
    first, second = _segment(prefix, 0), _segment(prefix, 1)

    if first == "One" and second == "Shot":
        session_type, track_index = "One Shot Qualifying", 3
    elif first == "Short":
        session_type, track_index = "Short Qualifying", 2
    elif first == "Time" and second == "Trial":
        session_type, track_index = "Time Trial", 2
    else:
        session_type, track_index = first or "", 1

    track = _segment(prefix, track_index)
    if track is None:
        track = UNKNOWN_TRACK
    return FilenameMetadata(sessionType=session_type, track=track, date=date)


def is_qualifying(session_type: str) -> bool:
    return session_type in QUALIFYING_SESSION_TYPES
