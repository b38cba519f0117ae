"""Telemetry Viewer configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_path(name: str) -> Path | None:
    value = (os.getenv(name) or "").strip()
    return Path(value).expanduser() if value else None


# Project root (one level up from telemetry_viewer/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Directory the session service scans for recorded telemetry JSON files
TELEMETRY_DIR = _env_path("TELEMETRY_DIR")

# Trimmed demo fixtures (sessions.json manifest + <slug>.json documents)
DEMO_DIR = _env_path("TELEMETRY_DEMO_DIR") or PROJECT_ROOT / "public" / "demo"

# Server settings
HOST = os.getenv("TELEMETRY_HOST", "0.0.0.0")
PORT = _env_int("TELEMETRY_PORT", 3080)

# Where the viewer looks for sessions during startup detection
REMOTE_URL = os.getenv("TELEMETRY_REMOTE_URL", f"http://127.0.0.1:{PORT}/api")
DEMO_URL = os.getenv("TELEMETRY_DEMO_URL", f"http://127.0.0.1:{PORT}/demo")

# Source detection
SKIP_REMOTE = _env_bool("TELEMETRY_SKIP_REMOTE", False)
START_IN_ARCHIVE = _env_bool("TELEMETRY_START_IN_ARCHIVE", False)
DETECT_DELAY_SECONDS = _env_float("TELEMETRY_DETECT_DELAY_SECONDS", 1.0)

# 0 disables the client timeout
HTTP_TIMEOUT_SECONDS = _env_float("TELEMETRY_HTTP_TIMEOUT_SECONDS", 30.0)

# Observability
OTEL_ENABLED = _env_bool("TELEMETRY_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("TELEMETRY_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("TELEMETRY_OTEL_SERVICE_NAME", "telemetry-viewer")
PROM_PORT = _env_int("TELEMETRY_PROM_PORT", 9464)

# CORS
FRONTEND_ORIGIN = os.getenv("TELEMETRY_FRONTEND_ORIGIN", "http://localhost:5173")
