from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    # Database backing the registered-users registry
    DATABASE_URL: str = "sqlite:///./onboarding.db"

    # Redis (waitlist store and rate limiting)
    REDIS_URL: str = "redis://localhost:6379"

    # Waitlist store: "redis" or "memory" (single process only)
    WAITLIST_BACKEND: str = "redis"
    WAITLIST_KEY_PREFIX: str = "waitlist"

    # Registry: "database" (local tables) or "http" (remote onboarding API)
    REGISTRY_BACKEND: str = "database"
    REGISTRY_URL: str = ""
    REGISTRY_API_KEY: str = ""
    REGISTRY_TIMEOUT_SECONDS: float = 5.0

    # Region used to parse phone numbers written without a leading "+"
    DEFAULT_PHONE_REGION: Optional[str] = None

    # Seed policy written when the onboarding_settings table is empty
    DEFAULT_WAITLIST_LIMIT: int = 10000
    DEFAULT_SIGNED_UP_USER_LIMIT: int = 0  # 0 => unlimited
    DEFAULT_SIGNUP_CUTOFF: int = -1  # negative => closed for waitlisted users
    DEFAULT_REGISTRATION_MODE: str = "waitlist"  # all|waitlist

    # API auth; empty disables the bearer check
    API_TOKEN: str = ""

    # Per-IP rate limiting
    RATE_LIMIT_ENABLED: bool = True
    IP_CALL_LIMIT: int = 30
    IP_CALL_WINDOW_SECONDS: int = 60

    # App Settings
    DEBUG: bool = False
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = Path(__file__).parent.parent.parent / ".env"
        env_file_encoding = 'utf-8'


settings = Settings()
