"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. Environment variables, e.g. ``DOCLING_URL=http://docling:5001``
  2. A ``.env`` file in the working directory

Field names map to upper-cased variable names (``ollama_model`` reads
``OLLAMA_MODEL``).  Defaults match a local Docling Serve + Ollama setup.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """FindDocs application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Conversion service (Docling Serve) ===
    docling_url: str = "http://localhost:35111"
    upload_timeout: float = Field(default=120.0, gt=0)  # seconds, submit + poll calls
    poll_interval: float = Field(default=5.0, ge=0)
    max_poll_attempts: int = Field(default=60, ge=1)  # 60 x 5s = 5 minutes
    batch_pacing_delay: float = Field(default=1.0, ge=0)

    # === Generation service (Ollama) ===
    # The generate endpoint is appended to this base, e.g. ".../api/generate".
    ollama_url: str = "http://localhost:11434/api"
    ollama_model: str = "llama3.1:8b-instruct-q4_K_M"
    generation_timeout: float = Field(default=60.0, gt=0)

    # === Retrieval ===
    max_context_length: int = Field(default=8000, gt=0)
    max_results: int = Field(default=5, ge=1)
    history_pairs: int = Field(default=3, ge=0)

    # === Persistence ===
    primary_db_path: str = "data/finddocs_primary.db"
    overflow_db_path: str = "data/finddocs_overflow.db"
    # Total characters the primary tier may hold across all keys.
    primary_quota_chars: int = Field(default=5_000_000, gt=0)
    overflow_threshold_chars: int = Field(default=100_000, gt=0)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
