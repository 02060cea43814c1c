"""Application configuration."""
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3000
    app_debug: bool = True
    log_level: str = "DEBUG"

    # Authoritative tournament backend (REST)
    backend_api_url: str = Field(
        default="http://localhost:5000/api/Tournaments",
        description="Base URL of the tournament resource on the backend",
    )
    backend_timeout_seconds: float = Field(
        default=10.0,
        description="Total request timeout for backend calls in seconds",
    )
    backend_connect_timeout_seconds: float = Field(
        default=5.0,
        description="Connect timeout for backend calls in seconds",
    )
    backend_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for idempotent backend reads (GET)",
    )

    # Clock
    tick_interval_seconds: float = Field(
        default=1.0,
        description="Period of the per-tournament tick loop",
    )

    # Display pairing
    display_code_length: int = Field(
        default=6,
        description="Length of the pairing code shown on display screens",
    )

    # CORS
    cors_origins: str = "http://localhost:5173"

    @field_validator("tick_interval_seconds")
    @classmethod
    def validate_tick_interval(cls, v: float) -> float:
        """Tick period must be positive."""
        if v <= 0:
            raise ValueError("tick_interval_seconds must be greater than 0")
        return v

    @field_validator("display_code_length")
    @classmethod
    def validate_display_code_length(cls, v: int) -> int:
        """Pairing codes are short but must not be trivially guessable."""
        if not 4 <= v <= 12:
            raise ValueError("display_code_length must be between 4 and 12")
        return v

    @field_validator("backend_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )

            origins = [o.strip() for o in self.cors_origins.split(",")]
            if "*" in origins:
                raise ValueError(
                    "CORS wildcard '*' is not allowed in production environment. "
                    "Specify explicit allowed origins."
                )

        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
