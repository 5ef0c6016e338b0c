from functools import lru_cache
from typing import Any, List
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "crud_suite"
    DATABASE_TIMEOUT_MS: int = 5000

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    CORS_ORIGINS: Any = ["*"]

    # Security
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12
    # Gate every record route behind a bearer token, not only /profile
    REQUIRE_AUTH: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Client
    API_BASE_URL: str = "http://localhost:5000/api"
    TOKEN_FILE: str = ""

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, v: Any) -> List[str]:
        return parse_cors_origins(v)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
