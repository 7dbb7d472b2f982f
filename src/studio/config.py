from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://app:devpassword@db:5432/studio"
    REDIS_URL: str = "redis://redis:6379/0"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Required: the process refuses to start without them.
    ADMIN_EMAIL: str
    ADMIN_SECRET: str
    GEMINI_API_KEY: str
    JWT_SECRET_KEY: str

    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-3-pro-image-preview"
    GEMINI_TIMEOUT_SECONDS: float = 180.0

    STRIPE_SECRET_KEY: str = ""

    SESSION_TTL_SECONDS: int = 12 * 60 * 60

    STARTING_BALANCE: int = 2
    DEFAULT_TOPUP_CREDITS: int = 10
    MAX_ARTIFACTS_PER_ACCOUNT: int = 200

    APP_ENV: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("ADMIN_EMAIL", "ADMIN_SECRET", "GEMINI_API_KEY", "JWT_SECRET_KEY")
    @classmethod
    def require_value(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be set in the environment")
        return v.strip()

    @field_validator("ADMIN_EMAIL")
    @classmethod
    def normalize_admin_email(cls, v: str) -> str:
        return v.lower()


settings = Settings()
