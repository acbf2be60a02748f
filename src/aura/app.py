"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .chat import ConversationOrchestrator
from .config import PROJECT_ROOT, Settings, get_settings
from .logging_handlers import DateStampedFileHandler, cleanup_old_logs
from .logging_settings import parse_logging_settings
from .routers.chat import router as chat_router
from .routers.dashboard import router as dashboard_router
from .routers.mood import router as mood_router

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
_APP_LOG_DIR = PROJECT_ROOT / "logs" / "app"


def _configure_logging() -> None:
    """Configure logging from LOG_LEVEL/LOG_FILE and logging_settings.conf."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv(PROJECT_ROOT / ".env")

    file_settings = parse_logging_settings(PROJECT_ROOT / "logging_settings.conf")
    env_level = os.getenv("LOG_LEVEL")
    terminal_level = file_settings.terminal_level
    if env_level:
        terminal_level = getattr(logging, env_level.upper(), logging.INFO)

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT)
    handlers: list[logging.Handler] = []

    if terminal_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(terminal_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    elif file_settings.app_level is not None:
        file_handler = DateStampedFileHandler(directory=_APP_LOG_DIR, prefix="aura")
        file_handler.setLevel(file_settings.app_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_level = file_settings.root_level
    if terminal_level is not None:
        root_level = min(root_level, terminal_level)

    logging.basicConfig(
        level=root_level,
        handlers=handlers or [logging.NullHandler()],
        force=True,  # Override any existing configuration
    )

    logging.getLogger("aura").setLevel(root_level)
    logging.getLogger("uvicorn").setLevel(root_level)
    logging.getLogger("uvicorn.access").setLevel(root_level)
    logging.getLogger("uvicorn.error").setLevel(root_level)

    # Optionally quiet down noisy third-party libraries
    if root_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    deleted, errors = cleanup_old_logs(
        [_APP_LOG_DIR],
        file_settings.retention_hours,
        logger=logging.getLogger(__name__),
    )
    if deleted or errors:
        logging.getLogger(__name__).info(
            "Log cleanup removed %d file(s) (%d error(s))", deleted, errors
        )


def create_app(
    settings: Settings | None = None,
    orchestrator: ConversationOrchestrator | None = None,
) -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = settings or get_settings()
    orchestrator = orchestrator or ConversationOrchestrator(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await orchestrator.initialize()
        try:
            yield
        finally:
            # Add timeout to prevent hanging during shutdown (especially in tests)
            try:
                await asyncio.wait_for(orchestrator.shutdown(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("Orchestrator shutdown timed out after 10s")
            except Exception as exc:
                logging.warning("Error during orchestrator shutdown: %s", exc)

    app = FastAPI(
        title="Aura Wellness Chat Backend",
        version="0.1.0",
        description="Streaming counselor chat with sentence-level speech playback.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.conversation_orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)
    app.include_router(mood_router)
    app.include_router(dashboard_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | bool | None]:
        return {
            "status": "ok",
            "chat_model": settings.chat_model,
            "tts_model": settings.tts_model,
            "speech_available": settings.gemini_api_key is not None,
        }

    return app


__all__ = ["create_app"]
