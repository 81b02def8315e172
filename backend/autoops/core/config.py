from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # OpenRouter / LLM Configuration
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://openrouter.ai/api/v1"
    openai_model: str = "openai/gpt-4o-mini"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 2048
    llm_timeout_seconds: float = 60.0
    llm_max_retries: int = 2

    # External search enrichment (You.com search API)
    search_api_url: str = "https://api.ydc-index.io/search"
    search_api_key: Optional[str] = None
    search_timeout_seconds: float = 8.0
    search_max_results: int = 3

    # Execution webhook
    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = 10.0

    # Scoring: "additive" or "threshold"
    severity_policy: str = "additive"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def has_llm_key(self) -> bool:
        """Check if LLM API key is configured."""
        return self.openai_api_key is not None and len(self.openai_api_key.strip()) > 0

    @property
    def has_search_key(self) -> bool:
        return self.search_api_key is not None and len(self.search_api_key.strip()) > 0


settings = Settings()
