from pydantic_settings import BaseSettings

from guidewriter.errors import ConfigurationError


class Settings(BaseSettings):
    # OpenRouter (required at runtime)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "anthropic/claude-sonnet-4"
    openrouter_model: str = ""  # optional override for every generation call

    # Exa research (required at runtime)
    exa_api_key: str = ""
    exa_base_url: str = "https://api.exa.ai/research/v1"
    research_model: str = "exa-research"
    research_poll_interval_seconds: float = 5.0
    research_max_poll_attempts: int = 120  # 10 minutes at the default interval
    research_request_timeout_seconds: float = 30.0

    # Work queue + output
    queue_file: str = "scripts/routes.txt"
    content_dir: str = "content"
    item_delay_seconds: float = 5.0
    publish_by_default: bool = True

    # Generation budgets
    extract_max_tokens: int = 8000
    extract_max_research_chars: int = 60000
    curate_max_tokens: int = 4000
    compose_max_tokens: int = 2000
    review_max_tokens: int = 8000

    # Link validation
    link_check_delay_seconds: float = 0.1
    link_check_timeout_seconds: float = 15.0
    link_check_max_per_window: int = 30
    link_check_window_seconds: float = 60.0
    link_cache_enabled: bool = False
    link_cache_dir: str = ".cache/links"
    link_cache_ttl_hours: int = 168

    # Curation totals (per-category quotas live in guidewriter.models.guide)
    curation_total_min: int = 30
    curation_total_max: int = 45
    curation_total_hard_max: int = 50

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def missing_credentials(self) -> list[str]:
        missing: list[str] = []
        if not self.openrouter_api_key.strip():
            missing.append("OPENROUTER_API_KEY")
        if not self.exa_api_key.strip():
            missing.append("EXA_API_KEY")
        return missing

    def require_credentials(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Set them in .env or the process environment."
            )


settings = Settings()
