"""Telemetry Viewer FastAPI backend: main application entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from telemetry_viewer import config
from telemetry_viewer.context import build_context
from telemetry_viewer.observability import initialize as initialize_observability, shutdown as shutdown_observability
from telemetry_viewer.routers.demo import demo_router
from telemetry_viewer.routers.sessions import sessions_router
from telemetry_viewer.routers.viewer import viewer_router
from telemetry_viewer.session_index import SessionIndex

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("telemetry_viewer")


def _http_timeout() -> httpx.Timeout:
    seconds = config.HTTP_TIMEOUT_SECONDS
    return httpx.Timeout(seconds if seconds > 0 else None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Telemetry viewer starting up")
    initialize_observability(app)

    # 1. Session service over TELEMETRY_DIR
    if config.TELEMETRY_DIR is None:
        logger.info("TELEMETRY_DIR not set; /api/sessions will answer 503")
    else:
        logger.info(f"Telemetry dir: {config.TELEMETRY_DIR}")
    app.state.session_index = SessionIndex(config.TELEMETRY_DIR)

    # 2. Viewer context and its sources
    client = httpx.AsyncClient(timeout=_http_timeout())
    app.state.http_client = client
    app.state.telemetry = build_context(client)

    # 3. Source detection (background task). The default remote and demo
    # URLs point back at this server, so give it a moment to start listening.
    async def _run_detection() -> None:
        delay = max(0.0, config.DETECT_DELAY_SECONDS)
        if delay > 0:
            await asyncio.sleep(delay)
        await app.state.telemetry.detect_sources()

    app.state.detect_task = asyncio.create_task(_run_detection())

    yield

    logger.info("Telemetry viewer shutting down")

    if not app.state.detect_task.done():
        app.state.detect_task.cancel()
        try:
            await app.state.detect_task
        except asyncio.CancelledError:
            pass

    await client.aclose()
    shutdown_observability(app)


app = FastAPI(
    title="Telemetry Viewer API",
    description="Browse recorded racing telemetry sessions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the Vite dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(sessions_router)
app.include_router(demo_router)
app.include_router(viewer_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    telemetry = getattr(app.state, "telemetry", None)
    return {
        "status": "ok",
        "mode": telemetry.mode.value if telemetry else "uninitialized",
        "telemetryDir": "configured" if config.TELEMETRY_DIR else "unset",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("telemetry_viewer.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
