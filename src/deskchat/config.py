"""Configuration management using pydantic-settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Generation defaults applied to every chat model the factory builds
    default_temperature: float = 0.7
    default_max_tokens: int = 2000

    # Provider endpoints (used when a configuration leaves base_url empty)
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com"
    gemini_base_url: str = "https://generativelanguage.googleapis.com"

    # Model discovery
    discovery_timeout: float = 30.0  # seconds per discovery request
    discovery_error_excerpt: int = 200  # chars of response body kept on errors

    # Probes
    probe_message: str = "Hello"
    config_probe_message: str = 'Hello! Please respond with just "OK" to confirm the connection.'

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# Global settings instance
settings = Settings()
