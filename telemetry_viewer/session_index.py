"""Directory-backed session index for the session service.

Scans a telemetry directory for recorded ``.json`` sessions, derives their
summaries and keeps the slug → relative path map used to serve documents.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path

from telemetry_viewer.filenames import DOCUMENT_EXTENSION, parse_filename, to_slug
from telemetry_viewer.models import SessionSummary
from telemetry_viewer.parsers.summary import derive_summary, sort_by_date_desc

logger = logging.getLogger("telemetry_viewer.index")

_FileKey = tuple[int, int]  # (mtime_ns, size)


def find_json_files(root: Path) -> list[str]:
    """Relative POSIX paths of every ``.json`` file under ``root``."""
    if not root.exists():
        return []
    return sorted(
        path.relative_to(root).as_posix()
        for path in root.rglob(f"*{DOCUMENT_EXTENSION}")
        if path.is_file()
    )


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.resolve(strict=False).relative_to(root.resolve(strict=False))
        return True
    except ValueError:
        return False


def _empty_summary(relative_path: str) -> SessionSummary:
    parsed = parse_filename(relative_path)
    return SessionSummary(
        relativePath=relative_path,
        slug=to_slug(relative_path),
        sessionType=parsed.sessionType,
        track=parsed.track,
        date=parsed.date,
        validLapCount=0,
    )


class SessionIndex:
    def __init__(self, root: Path | None):
        self.root = root
        self._slug_map: dict[str, str] = {}
        self._memo: dict[str, tuple[_FileKey, SessionSummary]] = {}
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return self.root is not None

    def _summarize(self, relative_path: str) -> SessionSummary:
        assert self.root is not None
        path = self.root / relative_path
        try:
            stat = path.stat()
        except OSError as exc:
            logger.debug("Cannot stat %s: %s", relative_path, exc)
            return _empty_summary(relative_path)

        key = (stat.st_mtime_ns, stat.st_size)
        memo = self._memo.get(relative_path)
        if memo is not None and memo[0] == key:
            return memo[1]

        try:
            document = json.loads(path.read_text(encoding="utf-8"))
            summary = derive_summary(document, relative_path).summary
        except Exception as exc:
            # Unreadable files are listed with no laps and filtered out below
            logger.debug("Could not summarize %s: %s", relative_path, exc)
            summary = _empty_summary(relative_path)
        self._memo[relative_path] = (key, summary)
        return summary

    def build(self) -> tuple[list[SessionSummary], dict[str, str]]:
        """Rescan the directory. Returns (valid summaries newest first, slug map)."""
        if self.root is None:
            return [], {}
        started = time.monotonic()
        files = find_json_files(self.root)
        slug_map: dict[str, str] = {}
        summaries: list[SessionSummary] = []
        for relative_path in files:
            summary = self._summarize(relative_path)
            slug_map[summary.slug] = relative_path
            if summary.validLapCount > 0:
                summaries.append(summary)

        for stale in set(self._memo) - set(files):
            self._memo.pop(stale, None)

        logger.info(
            "Indexed %d/%d session files in %.0f ms",
            len(summaries),
            len(files),
            (time.monotonic() - started) * 1000,
        )
        return sort_by_date_desc(summaries), slug_map

    async def list_sessions(self) -> list[SessionSummary]:
        async with self._lock:
            summaries, slug_map = await asyncio.to_thread(self.build)
            self._slug_map = slug_map
        return summaries

    async def resolve_path(self, slug: str) -> Path | None:
        """Absolute path for ``slug``, rescanning once if it is not known yet."""
        if self.root is None:
            return None
        if slug not in self._slug_map:
            await self.list_sessions()
        relative_path = self._slug_map.get(slug)
        if relative_path is None:
            return None

        full_path = self.root / relative_path
        if not _is_under(full_path, self.root) or not full_path.is_file():
            return None
        return full_path
