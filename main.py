"""
Backend entry point for the classroom progress service.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the web frontend
- APScheduler (AsyncIOScheduler) runs the periodic progress saves of open
  viewing sessions, and the sweep that closes idle ones, in the same loop

We use FastAPI's lifespan to manage startup/shutdown. On shutdown every
open viewing session is closed first so its final position is saved
before the scheduler and database go away.

Run with: python main.py [--dev] [--port PORT]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")
load_dotenv()

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classroom.config import check_required_env_vars, get_allowed_origins, get_api_port
from classroom.database import close_engine
from classroom.progress import get_session_registry
from classroom.scheduler import init_scheduler, shutdown_scheduler
from web_api.routes.courses import router as courses_router
from web_api.routes.progress import router as progress_router

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(dsn=os.environ["SENTRY_DSN"], send_default_pii=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    The scheduler has to start inside the running event loop.
    """
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        logger.warning(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    init_scheduler()
    get_session_registry().start_idle_sweep()

    yield

    logger.info("Flushing open viewing sessions...")
    await get_session_registry().close_all()
    shutdown_scheduler()
    await close_engine()


app = FastAPI(
    title="Classroom Progress API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(progress_router)
app.include_router(courses_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "open_sessions": len(get_session_registry()),
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Classroom Progress Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (frontend served by Vite on :5173)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Set env vars so they persist across uvicorn reloads
    if args.dev:
        os.environ["DEV_MODE"] = "true"
    if args.port:
        os.environ["API_PORT"] = str(args.port)

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=get_api_port(),
    )
