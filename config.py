"""
config.py
Runtime settings (read from environment, optionally via a .env file beside the code).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    db_path: Path
    proof_dir: Path
    default_admin_email: str
    default_admin_password: str
    expiring_window_days: int
    reset_token_ttl_minutes: int
    app_url: str
    log_level: str


def load_settings() -> Settings:
    return Settings(
        db_path=Path(os.environ.get("GYM_DB_PATH", BASE_DIR / "gym.db")),
        proof_dir=Path(os.environ.get("GYM_PROOF_DIR", BASE_DIR / "payment_proofs")),
        default_admin_email=os.environ.get("GYM_DEFAULT_ADMIN_EMAIL", "admin@gym.local"),
        default_admin_password=os.environ.get("GYM_DEFAULT_ADMIN_PASSWORD", "admin12345"),
        expiring_window_days=_env_int("GYM_EXPIRING_WINDOW_DAYS", 5),
        reset_token_ttl_minutes=_env_int("GYM_RESET_TOKEN_TTL_MINUTES", 60),
        app_url=os.environ.get("GYM_APP_URL", "http://localhost:8501"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )


settings = load_settings()
