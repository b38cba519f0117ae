"""Application-scoped owner of the active source, session list and cache.

One :class:`TelemetryContext` is built per application (see
``telemetry_viewer.main``) and handed to whatever needs session access.
Every mode change swaps the source, republishes the summary list and starts
a fresh :class:`SessionCache`.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from telemetry_viewer import config
from telemetry_viewer.errors import SessionFetchError
from telemetry_viewer.models import SessionSummary, TelemetryDocument, ViewerStatus
from telemetry_viewer.parsers.archive import RawSource, ingest_sources
from telemetry_viewer.parsers.summary import sort_by_date_desc
from telemetry_viewer.resolver import ResolverEvent, SourceMode, SourceResolver, transition
from telemetry_viewer.session_cache import SessionCache
from telemetry_viewer.sources import (
    ArchiveSessionSource,
    DemoSessionSource,
    RemoteSessionSource,
    SessionSource,
)

logger = logging.getLogger("telemetry_viewer")


class TelemetryContext:
    def __init__(self, resolver: SourceResolver, archive: ArchiveSessionSource | None = None):
        self._resolver = resolver
        self._archive = archive or ArchiveSessionSource()
        self._mode = SourceMode.DETECTING
        self._source: SessionSource | None = None
        self._sessions: tuple[SessionSummary, ...] = ()
        self._cache: SessionCache | None = None
        self._state_lock = asyncio.Lock()
        self.sessions_loading = True
        self.files_loading = False

    @property
    def mode(self) -> SourceMode:
        return self._mode

    @property
    def sessions(self) -> tuple[SessionSummary, ...]:
        """Current summary list, newest first. Replaced wholesale, never mutated."""
        return self._sessions

    @property
    def cache(self) -> SessionCache | None:
        return self._cache

    def status(self) -> ViewerStatus:
        return ViewerStatus(
            mode=self._mode.value,
            sessionsLoading=self.sessions_loading,
            filesLoading=self.files_loading,
            sessionCount=len(self._sessions),
            cachedSessionCount=len(self._cache) if self._cache is not None else 0,
        )

    async def _install(self, mode: SourceMode, source: SessionSource, sessions: list[SessionSummary]) -> None:
        previous = self._cache
        self._mode = mode
        self._source = source
        self._sessions = tuple(sort_by_date_desc(list(sessions)))
        self._cache = SessionCache(source.fetch_session, name=source.name)
        if previous is not None:
            await previous.reset()
        logger.info("Source mode is now %s (%d sessions)", mode.value, len(self._sessions))

    async def detect_sources(self) -> SourceMode:
        """Run startup detection once and publish its result.

        A result that arrives after the user already loaded files is dropped,
        since archive mode is terminal.
        """
        try:
            resolution = await self._resolver.resolve()
        finally:
            self.sessions_loading = False

        async with self._state_lock:
            if self._mode is not SourceMode.DETECTING:
                logger.info(
                    "Ignoring %s detection result; already in %s mode",
                    resolution.mode.value,
                    self._mode.value,
                )
                return self._mode
            source = resolution.source if resolution.source is not None else self._archive
            await self._install(resolution.mode, source, resolution.sessions)
            return self._mode

    async def load_files(self, sources: list[RawSource]) -> list[SessionSummary]:
        """Ingest uploads and switch to archive mode for good."""
        self.files_loading = True
        try:
            result = await ingest_sources(sources)
            async with self._state_lock:
                await self._archive.replace(result)
                mode = transition(self._mode, ResolverEvent.FILES_LOADED)
                await self._install(mode, self._archive, result.sessions)
                return list(self._sessions)
        finally:
            self.files_loading = False

    async def get_session(self, slug: str) -> TelemetryDocument:
        cache = self._cache
        if cache is None:
            raise SessionFetchError(slug, "session sources are still being detected")
        return await cache.fetch(slug)


def build_context(client: httpx.AsyncClient) -> TelemetryContext:
    """Wire sources and resolver from configuration."""
    resolver = SourceResolver(
        RemoteSessionSource(client, config.REMOTE_URL),
        DemoSessionSource(client, config.DEMO_URL),
        skip_remote=config.SKIP_REMOTE,
        start_in_archive=config.START_IN_ARCHIVE,
    )
    return TelemetryContext(resolver)
