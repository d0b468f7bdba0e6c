"""FastAPI application entry point."""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutor.config import get_settings
from tutor.llm.chat.manager import get_session_manager, shutdown_session_manager

# Configure logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    manager = get_session_manager()
    if not manager.settings.has_credential:
        logger.error("FATAL: API_KEY is missing. Chat replies will report a configuration error.")
    else:
        logger.info(f"Chat backend: {manager.backend_name}")

    yield

    await shutdown_session_manager()


app = FastAPI(
    title="EduIA",
    description="Subject tutors that answer text and image questions with streamed replies",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware - allow any localhost port for the dev frontend
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://localhost(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers after app is created to avoid circular imports
from tutor.api import chat  # noqa: E402

app.include_router(chat.router, prefix="/api/v1", tags=["chat"])
