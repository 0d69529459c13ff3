# zyra/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./zyra.db"
    REDIS_URL: str = "redis://127.0.0.1:6379/0"
    LIMITER_STORAGE_URI: str = "memory://"

    SESSION_SECRET: str
    SESSION_COOKIE_NAME: str = "zyra_session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 30

    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    CHAT_MAX_OUTPUT_TOKENS: int = 500

    OAUTH_CLIENT_ID: str = ""

    CLOUD_NAME: str = ""
    CLOUD_API_KEY: str = ""
    CLOUD_API_SECRET: str = ""
    CLOUD_FOLDER: str = "zyra-pdfs"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
