"""FastAPI dependencies resolving the services built by the app lifespan."""

from starlette.requests import HTTPConnection

from summarizator.core.config import Settings
from summarizator.services.orchestrator import PipelineOrchestrator
from summarizator.services.secrets.base import BaseSecretStore


def get_app_settings(conn: HTTPConnection) -> Settings:
    return conn.app.state.settings


def get_orchestrator(conn: HTTPConnection) -> PipelineOrchestrator:
    return conn.app.state.orchestrator


def get_secret_store(conn: HTTPConnection) -> BaseSecretStore:
    return conn.app.state.secrets
