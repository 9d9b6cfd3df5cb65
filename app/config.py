from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # App settings
    app_name: str = "Thesis Research Lab"
    debug: bool = True
    cors_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str = "sqlite:///./data/thesis_research.db"

    # LLM API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""
    gemini_api_key: str = ""  # Alias for google_api_key

    # Council models
    council_provider: str = "openai"  # discovery, analysts, verdict, debate
    council_model: str = "gpt-4o"
    critic_provider: str = "anthropic"  # skeptic, risk officer
    critic_model: str = "claude-3-5-sonnet-20241022"
    max_output_tokens: int = 4000

    # Research
    enable_deep_research: bool = True
    research_fallback_model: str = "gemini-2.0-flash"
    research_poll_interval: float = 10.0
    research_max_wait: float = 600.0

    # Pipeline
    max_opportunities: int = 3
    analysis_batch_size: int = 3
    enable_debate: bool = False

    @property
    def gemini_key(self) -> str:
        return self.gemini_api_key or self.google_api_key

    class Config:
        # Load from .env.local first (higher priority), then .env
        env_file = (".env", ".env.local")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
