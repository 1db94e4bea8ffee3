"""
Process settings for the readiness API, read from the environment and an
optional .env file. Scoring thresholds are not settings: they live in
services.readiness.config and can be overridden from the YAML file named by
MONITORING_RULES_PATH.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Deployment settings; every field can be set by an environment variable of the same name."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # Bind address for `python main.py`
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # LOG_FORMAT=text gives plain lines in development
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # Comma-separated origins allowed outside DEBUG
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Serve /docs and /openapi.json outside development
    EXPOSE_API_DOCS: bool = Field(default=False)

    # Optional YAML file overriding readiness thresholds and weights
    MONITORING_RULES_PATH: Optional[str] = Field(default=None)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def cors_origin_list(self) -> List[str]:
        if not self.CORS_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
