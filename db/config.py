"""
Database URL resolution and env-file loading shared by the app, alembic and scripts.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

_DEFAULT_ENV_FILES = (".env", ".env.local")
_CLOUD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_PSYCOPG_SCHEME = "postgresql+psycopg://"
_BARE_SCHEMES = ("postgres://", "postgresql://")


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, value = (part.strip() for part in line.split("=", 1))
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    if not key:
        return None
    return key, value


def load_env_files(filenames: Iterable[str] = _DEFAULT_ENV_FILES, *, root: Path | None = None) -> list[str]:
    """
    Copy KEY=VALUE pairs from env files into ``os.environ``.

    Files are read from the project root unless ``root`` is given; missing
    files are skipped. Variables already set in the process win over file
    values, and earlier files win over later ones. Returns the keys that
    were set.
    """

    base = root or _project_root()
    loaded: list[str] = []
    for filename in filenames:
        env_path = base / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is None:
                continue
            key, value = parsed
            if key not in os.environ:
                os.environ[key] = value
                loaded.append(key)
    return loaded


def normalize_postgres_url(url: str) -> str:
    """Rewrite bare postgres URLs to use the psycopg (v3) driver."""
    for scheme in _BARE_SCHEMES:
        if url.startswith(scheme):
            return _PSYCOPG_SCHEME + url[len(scheme) :]
    return url


def _candidate_variables() -> list[str]:
    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    candidates = ["DATABASE_URL"]
    if environment in _CLOUD_LIKE_ENVIRONMENTS:
        candidates.append("CLOUD_DATABASE_URL")
    candidates.append("LOCAL_DATABASE_URL")
    return candidates


def resolve_database_url() -> str:
    """
    Resolve the product store URL.

    ``DATABASE_URL`` wins; ``CLOUD_DATABASE_URL`` is consulted only when
    ``ENVIRONMENT`` is cloud-like; ``LOCAL_DATABASE_URL`` is the fallback.
    Blank values count as unset.
    """

    load_env_files()

    for name in _candidate_variables():
        value = os.getenv(name, "").strip()
        if value:
            return normalize_postgres_url(value)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
