"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
The application factory obtains the cached instance through ``get_settings()``
and hands it explicitly to every service it builds.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUMMARY_INSTRUCTION = (
    "Create a detailed summary of the following lecture. "
    "Include the key topics, concepts and important details. "
    "Format the summary with headings, bullet points and sections "
    "for easier readability."
)


class Settings(BaseSettings):
    """Summarizator settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        llm_provider: Default provider for summary requests (display name or enum name).
        llm_model: Default model; empty means the provider's own default.
        llm_max_concurrent: Upper bound on simultaneous outbound LLM requests.
        llm_rate_limit_retries: Extra attempts after HTTP 429 (0 = never retry).
        secret_store: Where API keys live ("file" or "memory").
        database_url: Async SQLAlchemy connection string for SQLite.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- LLM ---
    llm_provider: str = "openai"
    llm_model: str = ""
    summary_instruction: str = DEFAULT_SUMMARY_INSTRUCTION
    llm_timeout: float = 120.0  # Seconds per request (connect + read)
    llm_max_concurrent: int = 4
    llm_rate_limit_retries: int = 0

    # Provider endpoints (overridable for proxies and self-hosted gateways)
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1"
    mistral_base_url: str = "https://api.mistral.ai/v1"
    ollama_base_url: str = "http://localhost:11434/api"

    # --- Speech-to-text ---
    stt_provider: str = "whisper"
    whisper_model: str = "base"  # Model size: tiny, base, small, medium, large-v3
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    whisper_default_language: str = ""  # Empty = auto-detect; ISO 639-1 code e.g. "pl", "en"

    # --- Secrets ---
    secret_store: str = "file"
    secrets_path: str = "data/secrets.json"

    # --- Application ---
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    log_level: str = "INFO"

    # --- Storage ---
    # Paths are relative to the working directory; absolute paths also supported
    database_url: str = "sqlite+aiosqlite:///data/summarizator.db"
    database_echo: bool = False  # Log emitted SQL
    recordings_dir: str = "data/recordings"

    def ensure_dirs(self) -> None:
        """Create the on-disk directories the services write into."""
        Path(self.recordings_dir).mkdir(parents=True, exist_ok=True)
        Path(self.secrets_path).parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
