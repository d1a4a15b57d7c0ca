"""Application configuration.

Environment variables override all defaults. A `.env` file next to the
backend directory is loaded for local development.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env for local development (no-op if the file is absent)
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Local key-value substrate
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./clinicdesk.db")
    # Collections are stored under "{namespace}_{collection}"
    STORAGE_NAMESPACE: str = os.getenv("STORAGE_NAMESPACE", "shop")

    # Admin database holding per-clinic subscription records
    ADMIN_DATABASE_URL: str = os.getenv("ADMIN_DATABASE_URL", "")
    ADMIN_AUTH_TOKEN: str = os.getenv("ADMIN_AUTH_TOKEN", "")
    SUBSCRIPTION_CHECK_ENABLED: bool = _env_bool("SUBSCRIPTION_CHECK_ENABLED")
    if SUBSCRIPTION_CHECK_ENABLED and not ADMIN_DATABASE_URL:
        raise ValueError(
            "ADMIN_DATABASE_URL must be set when SUBSCRIPTION_CHECK_ENABLED is on."
        )

    # Seconds; passed straight to the HTTP transport
    REMOTE_TIMEOUT_SECONDS: float = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10"))

    # Customer counter reconciliation; 0 disables the background job
    RECONCILE_INTERVAL_SECONDS: int = int(os.getenv("RECONCILE_INTERVAL_SECONDS", "0"))

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        ).split(",")
        if origin.strip()
    ]


settings = Settings()
