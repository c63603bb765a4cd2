"""Repository path constants used across authorization core modules."""

from __future__ import annotations

import os
from pathlib import Path


def _resolve_project_root() -> Path:
    override = os.getenv("LMS_AUTHZ_PROJECT_ROOT")
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[2]


PROJECT_ROOT = _resolve_project_root()
PACKAGE_ROOT = Path(__file__).resolve().parent
MIGRATIONS_DIR = PACKAGE_ROOT / "migrations"


__all__ = ["MIGRATIONS_DIR", "PACKAGE_ROOT", "PROJECT_ROOT"]
