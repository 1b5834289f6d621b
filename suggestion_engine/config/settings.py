"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority
# order):
#
#   1. **Environment variables** - e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field ``suggestions_db_path`` maps to env var ``SUGGESTIONS_DB_PATH``.
# Defaults apply when neither source sets a value.
#
# Tuning tables that are awkward as env vars (vibe-conflict clusters,
# the title denylist, the facet list) live in config/config.yaml and are
# read by loader.load_config().
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Suggestion engine settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers (external ranker) ===
    # Empty string = "not configured"; the ranker is skipped when no
    # provider has a key.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, Groq, ...)
    openai_text_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""

    # === Storage ===
    suggestions_db_path: str = "data/suggestions.db"

    # === Catalog ===
    # When a seed file is set the in-memory catalog is used; otherwise the
    # SteamSpy / Steam store adapter.
    catalog_seed_path: str = ""
    steamspy_base_url: str = "https://steamspy.com/api.php"
    steam_store_base_url: str = "https://store.steampowered.com"
    steamspy_min_interval: float = 1.1
    steam_store_min_interval: float = 2.0
    http_timeout: float = 15.0

    # === Engine tuning ===
    result_size: int = 12
    provider_timeout: float = 45.0
    tag_min_score: float = 0.13
    same_developer_score: float = 0.8
    facet_similarity_floor: float = 0.3
    ranker_enabled: bool = True
    ranker_threshold: int = 7
    ranker_pool_size: int = 20

    # === Worker / status stream ===
    worker_enabled: bool = True
    worker_poll_interval: float = 2.0
    max_concurrent_jobs: int = 1
    stream_poll_interval: float = 2.0
    stream_max_no_change: int = 30

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
