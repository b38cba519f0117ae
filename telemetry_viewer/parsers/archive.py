"""Ingest user-supplied zip bundles and standalone telemetry documents."""
from __future__ import annotations

import asyncio
import io
import json
import logging
import time
import zipfile
from dataclasses import dataclass, field
from typing import Iterable

from telemetry_viewer.filenames import DOCUMENT_EXTENSION
from telemetry_viewer.models import SessionSummary, TelemetryDocument
from telemetry_viewer.observability import record_archive_candidate, start_span
from telemetry_viewer.parsers.summary import derive_summary, sort_by_date_desc

logger = logging.getLogger("telemetry_viewer.archive")

BUNDLE_EXTENSION = ".zip"


@dataclass(frozen=True)
class RawSource:
    """One user-supplied file: its name and raw bytes."""

    name: str
    data: bytes

    @property
    def is_bundle(self) -> bool:
        return self.name.lower().endswith(BUNDLE_EXTENSION)

    @property
    def is_document(self) -> bool:
        return self.name.lower().endswith(DOCUMENT_EXTENSION)


@dataclass
class ArchiveLoadResult:
    sessions: list[SessionSummary] = field(default_factory=list)
    documents: dict[str, TelemetryDocument] = field(default_factory=dict)

    def extend(self, other: ArchiveLoadResult) -> None:
        self.sessions.extend(other.sessions)
        for slug, document in other.documents.items():
            if slug in self.documents:
                # Kept as-is: the later document wins, the earlier summary stays listed.
                logger.warning("Duplicate session slug %s across uploads; keeping the later document", slug)
            self.documents[slug] = document


def _decode_candidate(relative_path: str, raw: bytes) -> tuple[SessionSummary, TelemetryDocument] | None:
    try:
        document = json.loads(raw.decode("utf-8"))
        summary, is_valid = derive_summary(document, relative_path)
    except Exception as exc:
        logger.debug("Skipping unreadable candidate %s: %s", relative_path, exc)
        record_archive_candidate("malformed")
        return None
    if not is_valid:
        logger.debug("Skipping %s: no timed laps", relative_path)
        record_archive_candidate("empty")
        return None
    record_archive_candidate("accepted")
    return summary, document


def _collect(candidates: Iterable[tuple[str, bytes]]) -> ArchiveLoadResult:
    result = ArchiveLoadResult()
    for relative_path, raw in candidates:
        accepted = _decode_candidate(relative_path, raw)
        if accepted is None:
            continue
        summary, document = accepted
        result.sessions.append(summary)
        result.documents[summary.slug] = document
    return result


def _bundle_candidates(source: RawSource) -> list[tuple[str, bytes]]:
    candidates: list[tuple[str, bytes]] = []
    with zipfile.ZipFile(io.BytesIO(source.data)) as bundle:
        for info in bundle.infolist():
            if info.is_dir() or not info.filename.endswith(DOCUMENT_EXTENSION):
                continue
            try:
                candidates.append((info.filename, bundle.read(info)))
            except Exception as exc:
                # Corrupt member, unsupported compression or an encrypted entry
                logger.debug("Skipping unreadable bundle entry %s: %s", info.filename, exc)
                record_archive_candidate("malformed")
    return candidates


def load_bundle_sync(source: RawSource) -> ArchiveLoadResult:
    """Extract every ``.json`` entry of a zip bundle; bad entries are skipped."""
    try:
        candidates = _bundle_candidates(source)
    except (zipfile.BadZipFile, OSError) as exc:
        logger.warning("Ignoring unreadable bundle %s: %s", source.name, exc)
        return ArchiveLoadResult()
    return _collect(candidates)


def load_documents_sync(sources: list[RawSource]) -> ArchiveLoadResult:
    return _collect((source.name, source.data) for source in sources)


async def ingest_sources(sources: list[RawSource]) -> ArchiveLoadResult:
    """Build a complete in-memory session set from a batch of uploads.

    Bundles are processed first, in input order, then standalone documents.
    Extraction and parsing run in worker threads so large bundles do not
    stall the event loop.
    """
    started = time.monotonic()
    bundles = [source for source in sources if source.is_bundle]
    documents = [source for source in sources if source.is_document]
    for source in sources:
        if not source.is_bundle and not source.is_document:
            logger.warning("Ignoring unsupported upload %s", source.name)

    result = ArchiveLoadResult()
    with start_span("archive.ingest", {"bundles": len(bundles), "documents": len(documents)}):
        for bundle in bundles:
            result.extend(await asyncio.to_thread(load_bundle_sync, bundle))
        if documents:
            result.extend(await asyncio.to_thread(load_documents_sync, documents))

    result.sessions = sort_by_date_desc(result.sessions)
    logger.info(
        "Ingested %d sessions from %d uploads in %.0f ms",
        len(result.sessions),
        len(sources),
        (time.monotonic() - started) * 1000,
    )
    return result
