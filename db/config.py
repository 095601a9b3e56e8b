"""
Environment-driven database configuration shared by the API, the CLI and Alembic.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILES = (".env", ".env.local")
CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})


def _parse_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        if key:
            values[key] = value.strip().strip('"').strip("'")
    return values


def load_env_files() -> None:
    """
    Load KEY=VALUE pairs from `.env` then `.env.local` at the project root.

    Variables already present in the process environment are never overwritten,
    so real deployment settings always win over local files.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in ENV_FILES:
        env_path = project_root / filename
        if not env_path.exists():
            continue
        for key, value in _parse_env_file(env_path).items():
            os.environ.setdefault(key, value)


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite postgres URLs to the psycopg (v3) SQLAlchemy driver form.
    """

    for prefix in ("postgres://", "postgresql://", "postgresql+psycopg2://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


def require_postgres_url(url: str, *, purpose: str) -> str:
    if not url.startswith("postgresql"):
        raise RuntimeError(f"{purpose} supports PostgreSQL URLs only.")
    return url


def resolve_database_url(*overrides: str | None) -> str:
    """
    Resolve the database URL for scraped record storage.

    Priority:
    1) the first non-empty explicit override (CLI flag, Alembic option)
    2) DATABASE_URL
    3) CLOUD_DATABASE_URL when ENVIRONMENT is cloud-like
    4) LOCAL_DATABASE_URL
    """

    load_env_files()

    for override in overrides:
        if override and override.strip():
            return normalize_postgres_url(override.strip())

    direct_url = os.getenv("DATABASE_URL")
    if direct_url:
        return normalize_postgres_url(direct_url)

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    cloud_url = os.getenv("CLOUD_DATABASE_URL")
    if environment in CLOUD_ENVIRONMENTS and cloud_url:
        return normalize_postgres_url(cloud_url)

    local_url = os.getenv("LOCAL_DATABASE_URL")
    if local_url:
        return normalize_postgres_url(local_url)

    raise RuntimeError(
        "No database URL configured for scraped record storage. Set DATABASE_URL, "
        "or configure LOCAL_DATABASE_URL / CLOUD_DATABASE_URL. Test-mode runs need none."
    )
