"""Error taxonomy for session acquisition."""
from __future__ import annotations


class TelemetryError(Exception):
    """Base class for every telemetry viewer error."""


class SourceUnavailableError(TelemetryError):
    """A remote service or demo bundle could not list its sessions."""

    def __init__(self, source: str, reason: str = "") -> None:
        self.source = source
        self.reason = reason
        message = f"{source} source unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MalformedDocumentError(TelemetryError):
    """A candidate document could not be decoded or lacks expected structure."""


class SessionNotFoundError(TelemetryError):
    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Session not found: {slug}")


class SessionFetchError(TelemetryError):
    def __init__(self, slug: str, reason: str = "") -> None:
        self.slug = slug
        self.reason = reason
        message = f"Failed to load session: {slug}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
