"""Observability helpers."""

from telemetry_viewer.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_archive_candidate,
    record_cache_lookup,
    record_session_fetch,
    record_source_probe,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_archive_candidate",
    "record_cache_lookup",
    "record_session_fetch",
    "record_source_probe",
]
