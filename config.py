"""
config.py
---------
Runtime settings for the budget coach, read from the environment.

A ``.env`` file in the working directory is honoured (python-dotenv), which
is how the storage backend is usually selected during local development:

    BUDGET_STORE=sqlite
    DATABASE_URL=sqlite:///budget_coach.db
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

STORE_BACKENDS = ("local", "sqlite", "db", "s3", "memory")


@dataclass(frozen=True)
class Settings:
    store_backend: str = "local"
    store_dir: str = ".budget_coach"
    database_url: str = "sqlite:///budget_coach.db"
    s3_bucket: Optional[str] = None
    s3_prefix: str = "budget_coach"
    aws_region: str = "us-east-1"
    log_level: Optional[str] = None


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build ``Settings`` from the environment (and ``.env`` if present)."""

    load_dotenv(env_file)

    backend = os.getenv("BUDGET_STORE", "local").strip().lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(f"Unknown BUDGET_STORE {backend!r}; expected one of {', '.join(STORE_BACKENDS)}")

    return Settings(
        store_backend=backend,
        store_dir=os.getenv("BUDGET_STORE_DIR", ".budget_coach"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///budget_coach.db"),
        s3_bucket=os.getenv("S3_BUCKET") or None,
        s3_prefix=os.getenv("S3_PREFIX", "budget_coach"),
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        log_level=os.getenv("BUDGET_COACH_LOG_LEVEL") or None,
    )
