"""Session sources: remote session service, demo bundle and user archive.

Every source answers the same two questions: which sessions exist
(:meth:`list_sessions`) and what is the full document for a slug
(:meth:`fetch_session`).
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from telemetry_viewer.errors import SessionFetchError, SessionNotFoundError, SourceUnavailableError
from telemetry_viewer.models import SessionSummary, TelemetryDocument
from telemetry_viewer.observability import record_session_fetch, start_span
from telemetry_viewer.parsers.archive import ArchiveLoadResult
from telemetry_viewer.parsers.summary import sort_by_date_desc

logger = logging.getLogger("telemetry_viewer.sources")


class SessionSource(Protocol):
    name: str

    async def list_sessions(self) -> list[SessionSummary]: ...

    async def fetch_session(self, slug: str) -> TelemetryDocument: ...


def parse_summary_list(payload: Any) -> list[SessionSummary]:
    """Validate a summary array; sessions without timed laps are dropped."""
    if not isinstance(payload, list):
        raise ValueError("session list is not an array")
    summaries = [SessionSummary.model_validate(item) for item in payload]
    return sort_by_date_desc([summary for summary in summaries if summary.validLapCount > 0])


class HttpSessionSource:
    """Session source backed by JSON over HTTP."""

    name = "http"
    list_path = "/sessions"
    document_path = "/sessions/{slug}"

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self._client = client
        self.base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def list_sessions(self) -> list[SessionSummary]:
        url = self._url(self.list_path)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            return parse_summary_list(response.json())
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(self.name, str(exc) or type(exc).__name__) from exc
        except (ValueError, ValidationError) as exc:
            raise SourceUnavailableError(self.name, f"invalid session list from {url}") from exc

    async def fetch_session(self, slug: str) -> TelemetryDocument:
        url = self._url(self.document_path.format(slug=quote(slug, safe="")))
        started = time.monotonic()
        result = "error"
        try:
            with start_span("session.fetch", {"source": self.name, "slug": slug}):
                try:
                    response = await self._client.get(url)
                except httpx.HTTPError as exc:
                    raise SessionFetchError(slug, str(exc) or type(exc).__name__) from exc

                if response.status_code == 404:
                    result = "not_found"
                    raise SessionNotFoundError(slug)
                if not response.is_success:
                    raise SessionFetchError(slug, f"HTTP {response.status_code}")

                try:
                    document = response.json()
                except ValueError as exc:
                    raise SessionFetchError(slug, "response is not JSON") from exc
                if not isinstance(document, dict):
                    raise SessionFetchError(slug, "response is not a session document")
                result = "success"
                return document
        finally:
            record_session_fetch(self.name, result, (time.monotonic() - started) * 1000)


class RemoteSessionSource(HttpSessionSource):
    """The session service: ``GET /sessions`` and ``GET /sessions/{slug}``."""

    name = "remote"


class DemoSessionSource(HttpSessionSource):
    """Static demo fixtures: ``sessions.json`` manifest plus ``<slug>.json``."""

    name = "demo"
    list_path = "/sessions.json"
    document_path = "/{slug}.json"


class ArchiveSessionSource:
    """In-memory sessions ingested from user uploads. Never performs I/O."""

    name = "archive"

    def __init__(self) -> None:
        self._sessions: tuple[SessionSummary, ...] = ()
        self._documents: dict[str, TelemetryDocument] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._documents)

    async def replace(self, result: ArchiveLoadResult) -> None:
        """Swap in a freshly ingested set, discarding everything held before."""
        async with self._lock:
            self._sessions = tuple(result.sessions)
            self._documents = dict(result.documents)

    async def list_sessions(self) -> list[SessionSummary]:
        return list(self._sessions)

    async def fetch_session(self, slug: str) -> TelemetryDocument:
        document = self._documents.get(slug)
        if document is None:
            record_session_fetch(self.name, "not_found", 0.0)
            raise SessionNotFoundError(slug)
        record_session_fetch(self.name, "success", 0.0)
        return document
