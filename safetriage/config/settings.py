"""Application configuration and settings."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    service_name: str = "safetriage"
    safetriage_port: int = 8005
    environment: str = "development"

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "safetriage"
    mongodb_collection_sessions: str = "triage_sessions"
    mongodb_collection_settings: str = "admin_settings"

    # Session Store
    session_backend: str = "mongo"  # "mongo" or "memory"
    session_ttl_minutes: int = 30
    session_sweep_interval_seconds: int = 300  # 0 disables the background sweep
    cron_secret: Optional[str] = None

    # Optional narrative augmentation (GitHub Models API)
    llm_augmentation_enabled: bool = False
    github_token: Optional[str] = None
    github_models_endpoint: str = "https://models.inference.ai.azure.com"
    model_name: str = "Llama-3.3-70B-Instruct"
    model_temperature: float = 0.2
    model_max_tokens: int = 400
    llm_invoke_timeout: float = 20.0

    # Safety Settings
    # Extra phrases merged into the built-in red-flag rules.
    red_flag_keywords: str = ""
    system_prompt_cache_seconds: int = 60

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False
        protected_namespaces = ("settings_",)

    @property
    def extra_red_flag_phrases(self) -> list[str]:
        """Configured red-flag phrases, lowercased and de-duplicated in order."""
        phrases: list[str] = []
        for raw in self.red_flag_keywords.split(","):
            phrase = " ".join(raw.strip().lower().split())
            if phrase and phrase not in phrases:
                phrases.append(phrase)
        return phrases


# Global settings instance
settings = Settings()
