"""
Application configuration - loads from environment variables.
"""
import os
import warnings
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


def _as_bool(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no")


# Database
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./campaign_manager.db")

# JWT
_DEV_JWT_SECRET_KEY = "dev-only-secret-key-change-me-before-deploying"
JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_LIFETIME_MINUTES: int = int(
    os.getenv("JWT_ACCESS_TOKEN_LIFETIME_MINUTES", "1440")
)

if not JWT_SECRET_KEY:
    warnings.warn("JWT_SECRET_KEY not set, using the development key")
    JWT_SECRET_KEY = _DEV_JWT_SECRET_KEY

BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Assets
ASSET_STORAGE_DIR: str = os.getenv("ASSET_STORAGE_DIR", str(BASE_DIR / "uploads"))
ASSET_BASE_URL: str = os.getenv("ASSET_BASE_URL", "/uploads").rstrip("/")
ASSET_MAX_BYTES: int = int(os.getenv("ASSET_MAX_BYTES", str(10 * 1024 * 1024)))

# CORS
CORS_ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

# Demo data
SEED_DEMO_DATA: bool = _as_bool(os.getenv("SEED_DEMO_DATA", "false"))
_seed = os.getenv("SEED_RANDOM_SEED")
SEED_RANDOM_SEED: Optional[int] = int(_seed) if _seed else None

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


class Settings:
    DATABASE_URL: str = DATABASE_URL
    JWT_SECRET_KEY: str = JWT_SECRET_KEY
    JWT_ALGORITHM: str = JWT_ALGORITHM
    JWT_ACCESS_TOKEN_LIFETIME_MINUTES: int = JWT_ACCESS_TOKEN_LIFETIME_MINUTES
    BCRYPT_ROUNDS: int = BCRYPT_ROUNDS
    ASSET_STORAGE_DIR: str = ASSET_STORAGE_DIR
    ASSET_BASE_URL: str = ASSET_BASE_URL
    ASSET_MAX_BYTES: int = ASSET_MAX_BYTES
    CORS_ALLOWED_ORIGINS: list[str] = CORS_ALLOWED_ORIGINS
    SEED_DEMO_DATA: bool = SEED_DEMO_DATA
    SEED_RANDOM_SEED: Optional[int] = SEED_RANDOM_SEED
    LOG_LEVEL: str = LOG_LEVEL


settings = Settings()
