"""Single-flight cache of full session documents, keyed by slug.

Each slug maps to either a pending fetch shared by every concurrent caller
or a resolved document. Failed fetches are evicted before the error reaches
any caller so the next request starts a fresh attempt.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Union

from telemetry_viewer.models import TelemetryDocument
from telemetry_viewer.observability import record_cache_lookup

logger = logging.getLogger("telemetry_viewer.cache")

SessionLoader = Callable[[str], Awaitable[TelemetryDocument]]


@dataclass(eq=False)
class PendingEntry:
    task: asyncio.Task | None = field(default=None, repr=False)


@dataclass(eq=False)
class ResolvedEntry:
    document: TelemetryDocument = field(repr=False)


CacheEntry = Union[PendingEntry, ResolvedEntry]


class SessionCache:
    """Slug → in-flight or resolved document for one source mode.

    A cache is bound to a single loader. Switching sources means calling
    :meth:`reset` (or building a new cache); fetches still in flight from
    the previous generation never write into the new one.
    """

    def __init__(self, loader: SessionLoader, *, name: str = "sessions"):
        self._loader = loader
        self.name = name
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return sum(1 for entry in self._entries.values() if isinstance(entry, ResolvedEntry))

    def __contains__(self, slug: object) -> bool:
        return slug in self._entries

    def pending_count(self) -> int:
        return sum(1 for entry in self._entries.values() if isinstance(entry, PendingEntry))

    async def fetch(self, slug: str) -> TelemetryDocument:
        async with self._lock:
            entry = self._entries.get(slug)
            if isinstance(entry, ResolvedEntry):
                record_cache_lookup("hit")
                return entry.document
            if entry is None:
                record_cache_lookup("miss")
                entry = PendingEntry()
                entry.task = asyncio.create_task(self._load(slug, entry))
                self._entries[slug] = entry
            else:
                record_cache_lookup("joined")

        # Shielded so one cancelled caller does not cancel the shared fetch.
        return await asyncio.shield(entry.task)

    async def _load(self, slug: str, entry: PendingEntry) -> TelemetryDocument:
        try:
            document = await self._loader(slug)
        except BaseException:
            async with self._lock:
                if self._entries.get(slug) is entry:
                    del self._entries[slug]
            raise

        async with self._lock:
            if self._entries.get(slug) is entry:
                self._entries[slug] = ResolvedEntry(document)
            else:
                logger.debug("Discarding stale %s fetch for %s", self.name, slug)
        return document

    async def reset(self) -> None:
        """Drop every entry; in-flight fetches finish but are not stored."""
        async with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        if dropped:
            logger.info("Cleared %s cache (%d entries)", self.name, dropped)
