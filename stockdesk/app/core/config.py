"""Application configuration.

Environment variables override all defaults.
"""
from __future__ import annotations

import os
from pathlib import Path


def _parse_admins(raw: str) -> list[tuple[str, str]]:
    admins = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry or ":" not in entry:
            continue
        username, password = entry.split(":", 1)
        admins.append((username.strip(), password))
    return admins


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    # Storage
    DATA_DIR: Path = Path(os.getenv("STOCKDESK_DATA_DIR", "database"))
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'inventory.db'}")
    SQL_ECHO: bool = _as_bool(os.getenv("SQL_ECHO", "false"))

    # Reports
    EXPORT_DIR: Path = Path(os.getenv("EXPORT_DIR", str(Path.home() / "Downloads")))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Sessions / passwords
    SESSION_TTL_MINUTES: int = int(os.getenv("SESSION_TTL_MINUTES", "720"))
    MIN_PASSWORD_LENGTH: int = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))

    # Accounts created at bootstrap when missing (user:password,user:password)
    SEED_ADMINS: list[tuple[str, str]] = _parse_admins(
        os.getenv("SEED_ADMINS", "fagan@admin1:fagan_password1,fagan@admin2:fagan_password2")
    )


settings = Settings()
