"""Startup source detection as an explicit state machine.

``detecting`` is the only automatic non-terminal state. The resolver probes
its sources in order (remote service, then demo bundle) and feeds each
outcome to :func:`transition`; when every probe fails the viewer settles in
``archive`` mode with an empty list and waits for uploads. Loading files
moves any state to ``archive``, which is never left automatically.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from telemetry_viewer.errors import SourceUnavailableError
from telemetry_viewer.models import SessionSummary
from telemetry_viewer.observability import record_source_probe, start_span
from telemetry_viewer.sources import SessionSource

logger = logging.getLogger("telemetry_viewer.resolver")


class SourceMode(str, Enum):
    DETECTING = "detecting"
    REMOTE = "remote"
    DEMO = "demo"
    ARCHIVE = "archive"


class ResolverEvent(str, Enum):
    REMOTE_LISTED = "remote_listed"
    DEMO_LISTED = "demo_listed"
    PROBE_FAILED = "probe_failed"
    SOURCES_EXHAUSTED = "sources_exhausted"
    FILES_LOADED = "files_loaded"


_DETECTING_TRANSITIONS: dict[ResolverEvent, SourceMode] = {
    ResolverEvent.REMOTE_LISTED: SourceMode.REMOTE,
    ResolverEvent.DEMO_LISTED: SourceMode.DEMO,
    ResolverEvent.PROBE_FAILED: SourceMode.DETECTING,
    ResolverEvent.SOURCES_EXHAUSTED: SourceMode.ARCHIVE,
}

_LISTED_EVENTS: dict[str, ResolverEvent] = {
    SourceMode.REMOTE.value: ResolverEvent.REMOTE_LISTED,
    SourceMode.DEMO.value: ResolverEvent.DEMO_LISTED,
}


def transition(mode: SourceMode, event: ResolverEvent) -> SourceMode:
    """Pure transition function: ``(mode, event) -> next mode``."""
    if event is ResolverEvent.FILES_LOADED:
        return SourceMode.ARCHIVE
    if mode is SourceMode.DETECTING:
        return _DETECTING_TRANSITIONS[event]
    # remote, demo and archive are terminal for detection events
    return mode


def listed_event(source: SessionSource) -> ResolverEvent:
    try:
        return _LISTED_EVENTS[source.name]
    except KeyError:
        raise ValueError(f"Source {source.name!r} cannot be probed during detection") from None


@dataclass
class Resolution:
    mode: SourceMode
    sessions: list[SessionSummary] = field(default_factory=list)
    source: SessionSource | None = None


class SourceResolver:
    """Runs the detection chain once.

    ``skip_remote`` drops the remote probe (demo → archive only);
    ``start_in_archive`` skips probing altogether.
    """

    def __init__(
        self,
        remote: SessionSource | None,
        demo: SessionSource | None,
        *,
        skip_remote: bool = False,
        start_in_archive: bool = False,
    ):
        self.start_in_archive = start_in_archive
        probes: list[SessionSource] = []
        if remote is not None and not skip_remote:
            probes.append(remote)
        if demo is not None:
            probes.append(demo)
        self.probes: Sequence[SessionSource] = tuple(probes)

    async def resolve(self) -> Resolution:
        mode = SourceMode.DETECTING
        if self.start_in_archive:
            logger.info("Configured to start in archive mode; skipping source detection")
            return Resolution(mode=transition(mode, ResolverEvent.SOURCES_EXHAUSTED))

        for source in self.probes:
            with start_span("source.probe", {"source": source.name}):
                try:
                    sessions = await source.list_sessions()
                except SourceUnavailableError as exc:
                    logger.info("Source %s unavailable: %s", source.name, exc.reason or exc)
                    record_source_probe(source.name, "unavailable")
                    mode = transition(mode, ResolverEvent.PROBE_FAILED)
                    continue
                except Exception as exc:
                    logger.warning("Source %s probe failed: %s", source.name, exc)
                    record_source_probe(source.name, "error")
                    mode = transition(mode, ResolverEvent.PROBE_FAILED)
                    continue

            record_source_probe(source.name, "listed")
            mode = transition(mode, listed_event(source))
            logger.info("Using %s source (%d sessions)", source.name, len(sessions))
            return Resolution(mode=mode, sessions=sessions, source=source)

        mode = transition(mode, ResolverEvent.SOURCES_EXHAUSTED)
        logger.info("No session source reachable; waiting for uploaded files")
        return Resolution(mode=mode)
