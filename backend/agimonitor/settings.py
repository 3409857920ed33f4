from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


class LLMProviderEnum(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AGIMONITOR_", extra="ignore", populate_by_name=True)

    repo_root: Path = Field(default_factory=_default_repo_root)
    data_dir: Path | None = None
    config_dir: Path | None = None

    # Score combination
    heuristic_max: float = 0.4
    model_score_weight: float = 0.85
    heuristic_score_weight: float = 0.15
    analysis_corroboration_penalty: float = 0.15
    validation_corroboration_penalty: float = 0.2
    triage_enabled: bool = True

    # Analysis job settings (in-process queue)
    analyze_batch_size: int = 2
    analyze_job_limit: int = 50
    oracle_timeout_s: float = 15.0
    db_op_timeout_s: float = 10.0
    batch_timeout_s: float = 20.0
    inter_batch_delay_s: float = 1.0
    queue_max_pending: int = 32
    queue_start_worker_on_startup: bool = True

    # LLM Provider Configuration
    llm_provider: LLMProviderEnum = LLMProviderEnum.OPENAI
    llm_model: str = "gpt-5-mini"
    translation_enabled: bool = True
    translation_model: str | None = None
    ollama_base_url: str = "http://localhost:11434"

    # Acquisition
    crawl_rate_interval_s: float = 2.0
    crawl_concurrency: int = 4
    http_timeout_s: float = 15.0
    feed_timeout_s: float = 30.0
    max_redirects: int = 3
    max_content_bytes: int = 10 * 1024 * 1024
    browser_nav_timeout_ms: int = 30_000
    post_nav_delay_min_s: float = 2.0
    post_nav_delay_max_s: float = 5.0
    playwright_retries: int = 2
    sitemap_max_urls: int = 8
    discover_max_results: int = 20

    # Search fallback; BRAVE_API_KEY is accepted without prefix
    brave_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("AGIMONITOR_BRAVE_API_KEY", "BRAVE_API_KEY"),
    )

    def get_default_model_for_provider(self) -> str:
        """Get the default model name for the configured provider."""
        defaults = {
            LLMProviderEnum.OPENAI: "gpt-5-mini",
            LLMProviderEnum.ANTHROPIC: "claude-sonnet-4-5-20250929",
            LLMProviderEnum.OLLAMA: "llama3.1",
        }
        return defaults.get(self.llm_provider, "gpt-5-mini")

    @property
    def resolved_data_dir(self) -> Path:
        return self.data_dir or (self.repo_root / "data")

    @property
    def resolved_config_dir(self) -> Path:
        return self.config_dir or (self.repo_root / "config")

    @property
    def db_path(self) -> Path:
        return self.resolved_data_dir / "index" / "agimonitor.sqlite3"

    @property
    def sources_path(self) -> Path:
        return self.resolved_config_dir / "sources.yaml"

    @property
    def resolved_translation_model(self) -> str:
        return self.translation_model or self.llm_model


# Singleton instance - import this instead of creating Settings()
settings = Settings()
