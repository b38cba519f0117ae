"""Derive lightweight session summaries from full telemetry documents.

The one place summary metadata is computed: the directory-backed session
service and the archive ingestor both call :func:`derive_summary`.
"""
from __future__ import annotations

from typing import Any, NamedTuple

from telemetry_viewer.errors import MalformedDocumentError
from telemetry_viewer.filenames import is_qualifying, parse_filename, to_slug
from telemetry_viewer.models import FilenameMetadata, LapIndicator, SessionSummary

# All four sub-sector validity bits set
ALL_SECTORS_VALID = 15


class DerivedSummary(NamedTuple):
    summary: SessionSummary
    is_valid: bool


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _lap_time_ms(lap: Any) -> float:
    value = _as_dict(lap).get("lap-time-in-ms")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return 0


def _lap_history(driver: dict[str, Any]) -> list[Any]:
    laps = _as_dict(driver.get("session-history")).get("lap-history-data")
    return laps if isinstance(laps, list) else []


def _timed_laps(laps: list[Any]) -> list[dict[str, Any]]:
    return [lap for lap in laps if _lap_time_ms(lap) > 0]


def _classification(document: dict[str, Any]) -> list[dict[str, Any]]:
    drivers = document.get("classification-data")
    if drivers is None:
        return []
    if not isinstance(drivers, list):
        raise MalformedDocumentError("classification-data is not a list")
    return [driver for driver in drivers if isinstance(driver, dict)]


def select_focus_driver(drivers: list[dict[str, Any]]) -> tuple[dict[str, Any] | None, bool]:
    """Return ``(focus_driver, is_spectator)``.

    The player entry wins. Without one the session was recorded in spectator
    mode and the driver with the most timed laps is used; on a tie the first
    entry keeps the title.
    """
    for driver in drivers:
        if driver.get("is-player"):
            return driver, False

    focus: dict[str, Any] | None = None
    max_laps = 0
    for driver in drivers:
        count = len(_timed_laps(_lap_history(driver)))
        if count > max_laps:
            max_laps = count
            focus = driver
    return focus, True


def qualifying_lap_indicators(laps: list[Any], best_lap_num: int) -> tuple[LapIndicator, ...]:
    indicators: list[LapIndicator] = []
    for position, lap in enumerate(_timed_laps(laps), start=1):
        if position == best_lap_num:
            indicators.append("best")
        elif lap.get("lap-valid-bit-flags") == ALL_SECTORS_VALID:
            indicators.append("valid")
        else:
            indicators.append("invalid")
    return tuple(indicators)


def ai_difficulty(document: dict[str, Any]) -> int:
    """AI difficulty is meaningless online, so it reports 0 there."""
    session_info = _as_dict(document.get("session-info"))
    if session_info.get("network-game") == 1:
        return 0
    value = session_info.get("ai-difficulty")
    return 0 if value is None else _as_int(value)


def derive_summary(
    document: Any,
    relative_path: str,
    metadata: FilenameMetadata | None = None,
) -> DerivedSummary:
    """Compute the list summary and validity verdict for one document.

    Raises MalformedDocumentError when the document is not a JSON object or
    its classification data is not a list. Filtering on the verdict is the
    caller's job.
    """
    if not isinstance(document, dict):
        raise MalformedDocumentError(f"{relative_path}: document is not an object")

    parsed = metadata or parse_filename(relative_path)
    focus, is_spectator = select_focus_driver(_classification(document))

    valid_lap_count = 0
    lap_indicators: tuple[LapIndicator, ...] | None = None
    best_lap_time: str | None = None
    best_lap_time_ms: int | None = None

    if focus is not None:
        laps = _lap_history(focus)
        valid_lap_count = len(_timed_laps(laps))

        if is_qualifying(parsed.sessionType):
            best_lap_num = _as_int(
                _as_dict(focus.get("session-history")).get("best-lap-time-lap-num"),
                default=-1,
            )
            lap_indicators = qualifying_lap_indicators(laps, best_lap_num)

            # Best lap is indexed against the unfiltered history
            if 0 < best_lap_num <= len(laps):
                best_lap = _as_dict(laps[best_lap_num - 1])
                if best_lap.get("lap-time-str"):
                    best_lap_time = str(best_lap["lap-time-str"])
                    raw_ms = best_lap.get("lap-time-in-ms")
                    best_lap_time_ms = None if raw_ms is None else _as_int(raw_ms)

    summary = SessionSummary(
        relativePath=relative_path,
        slug=to_slug(relative_path),
        sessionType=parsed.sessionType,
        track=parsed.track,
        date=parsed.date,
        validLapCount=valid_lap_count,
        lapIndicators=lap_indicators,
        bestLapTime=best_lap_time,
        bestLapTimeMs=best_lap_time_ms,
        aiDifficulty=ai_difficulty(document),
        isSpectator=is_spectator,
    )
    return DerivedSummary(summary=summary, is_valid=valid_lap_count > 0)


def sort_by_date_desc(summaries: list[SessionSummary]) -> list[SessionSummary]:
    """Most recent first; ties keep discovery order."""
    return sorted(summaries, key=lambda summary: summary.date, reverse=True)
