"""
Explicit dotenv loader.

Rules:
- In production (`ENVIRONMENT=prod`): do not load `.env` / `.env.local`.
- Otherwise: load `.env` then `.env.local` (local overrides).

Must not import `src.config.config`.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv


def _is_prod_env() -> bool:
    return (os.getenv("ENVIRONMENT") or "prod").strip().lower() == "prod"


def load_dotenv_files(*, repo_root: Path | None = None) -> list[Path]:
    """
    Load dotenv files for local/dev usage. No-op in prod.

    Returns:
        The files that were loaded, in order
    """
    if _is_prod_env():
        return []

    root = repo_root or Path(__file__).resolve().parent.parent.parent
    loaded = []
    for name, override in ((".env", False), (".env.local", True)):
        path = root / name
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
            loaded.append(path)
    return loaded
