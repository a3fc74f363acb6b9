from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./baas.db"

    # Dashboard session tokens
    JWT_SECRET_KEY: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    ALLOWED_HOSTS: List[str] = ["localhost", "127.0.0.1"]

    # API keys
    API_KEY_HEADER: str = "x-api-key"
    PROJECT_ID_HEADER: str = "x-project-id"
    API_KEY_BYTES: int = 32
    API_KEY_DEFAULT_ENV: str = "live"
    LEGACY_FORMAT_ONLY_AUTH: bool = False

    # Usage retention
    USAGE_RETENTION_DAYS: int = 90
    RETENTION_SWEEP_INTERVAL_SECONDS: int = 3600

    # Redis
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_IP_REQUESTS: int = 300
    RATE_LIMIT_IP_WINDOW_SECONDS: int = 900
    RATE_LIMIT_KEY_REQUESTS: int = 1000
    RATE_LIMIT_KEY_WINDOW_SECONDS: int = 3600

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
