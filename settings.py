import os
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "Ecomhub Finance"

    # Ledger REST backend that owns all accounting state
    LEDGER_API_BASE_URL: str = os.getenv("LEDGER_API_BASE_URL", "https://ecomhub-core-production.up.railway.app")

    # Requests are built as f"{base}/api/v1/..."
    if LEDGER_API_BASE_URL.endswith("/"):
        LEDGER_API_BASE_URL = LEDGER_API_BASE_URL.rstrip("/")

    LEDGER_API_TIMEOUT: float = 15.0

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    SESSION_HTTPS_ONLY: bool = True
    LOGIN_URL: str = "/login"

    CURRENCY: str = "IDR"
    PAGE_SIZE: int = 10
    LOG_LEVEL: str = "INFO"

settings = Settings()
