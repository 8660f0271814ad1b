"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoint. Services are built once per process in
the lifespan handler from an explicit ``Settings`` value and shared via
``app.state``. The module-level ``app`` instance allows
``uvicorn summarizator.api.app:app --reload``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from summarizator import __version__
from summarizator.api import websocket
from summarizator.api.middleware.error_handler import register_error_handlers
from summarizator.api.routes import pipeline, providers, recording
from summarizator.core.config import Settings, get_settings
from summarizator.core.models import HealthResponse
from summarizator.services.audio.importer import AudioImporter
from summarizator.services.llm import create_llm
from summarizator.services.llm.base import BaseLLM
from summarizator.services.orchestrator import PipelineOrchestrator
from summarizator.services.secrets import create_secret_store
from summarizator.services.secrets.base import BaseSecretStore
from summarizator.services.storage import Database, StorageService
from summarizator.services.transcription import create_stt
from summarizator.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


def _build_secret_store(settings: Settings) -> BaseSecretStore:
    if settings.secret_store == "file":
        return create_secret_store("file", path=settings.secrets_path)
    return create_secret_store(settings.secret_store)


def create_app(
    settings: Settings | None = None,
    *,
    secrets: BaseSecretStore | None = None,
    stt: BaseSTT | None = None,
    llm: BaseLLM | None = None,
) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        settings: Explicit configuration; defaults to ``get_settings()``.
        secrets: Secret store override (otherwise from ``settings.secret_store``).
        stt: Transcription engine override (otherwise from ``settings.stt_provider``).
        llm: LLM client override (otherwise the HTTP client).
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        settings.ensure_dirs()
        database = Database.from_settings(settings)
        await database.create_all()

        secret_store = secrets or _build_secret_store(settings)
        llm_client = llm or create_llm(settings, secret_store)
        orchestrator = PipelineOrchestrator(
            settings,
            StorageService(database.session_factory),
            stt or create_stt(settings.stt_provider, settings=settings),
            llm_client,
            AudioImporter(settings),
        )
        await orchestrator.load()

        app.state.settings = settings
        app.state.secrets = secret_store
        app.state.orchestrator = orchestrator
        logger.info("Summarizator started (db=%s)", settings.database_url)
        try:
            yield
        finally:
            await orchestrator.shutdown()
            if llm is None:
                await llm_client.aclose()
            await database.dispose()
            logger.info("Summarizator stopped")

    app = FastAPI(
        title="Summarizator",
        description="Record or import audio, transcribe it and summarize "
        "the transcript with a choice of LLM providers.",
        version=__version__,
        lifespan=lifespan,
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__, timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(recording.router, prefix="/api/v1")
    app.include_router(pipeline.router, prefix="/api/v1")
    app.include_router(providers.router, prefix="/api/v1")

    # -- WebSocket --
    app.include_router(websocket.router)

    return app


app = create_app()
