# backend/warehouse_edge/config.py
from __future__ import annotations
import os


def _csv_env(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/warehouse_edge.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warehouse_edge.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Roles allowed to submit material requests (deployment policy)
    REQUEST_SUBMIT_ROLES = _csv_env("REQUEST_SUBMIT_ROLES", "DepartmentEmployee")

    # Dashboard "recent activity" window
    RECENT_ACTIVITY_DAYS = int(os.environ.get("RECENT_ACTIVITY_DAYS", "7"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
