"""Configuration for FastAPI application."""

import json
from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STATUS_API_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # API Configuration
    api_prefix: str = "/api/v1"
    api_title: str = "ollama-lifecycle status API"
    api_version: str = "1.0.0"
    allowed_origins: Union[str, List[str]] = ["*"]

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    # Health probes
    inference_check: bool = False  # generation smoke test on GET /health

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed_origins from string or list."""
        if isinstance(v, str):
            # If it's a JSON array string, parse it
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v]
            # Single origin string
            return [v]
        return v


settings = Settings()
