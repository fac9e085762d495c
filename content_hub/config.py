"""
Configuration management for Content Hub.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="Content Hub")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)
    api_default_limit: int = Field(default=10)
    api_max_limit: int = Field(default=100)
    cors_allow_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins.",
    )

    # Database
    database_url: str = Field(default="sqlite:///./content_hub.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Content
    default_language: str = Field(
        default="en",
        description="Language code reported when no language row is marked default.",
    )
    seed_languages: bool = Field(
        default=True,
        description="Insert the built-in language list on first start.",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
