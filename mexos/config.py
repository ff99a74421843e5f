"""Configuration loading for mexos.

Config sources (in priority order):
1. Explicit arguments passed to functions
2. Environment variables (MEXOS_DB_PATH, etc.)
3. .env file in current directory
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = Path("mexos.db")
DEFAULT_JOURNAL_NAME = "mexos-decisions.jsonl"

TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUTHY


@dataclass
class Config:
    db_path: Path = DEFAULT_DB_PATH
    journal_path: Path | None = None  # defaults to a file next to the DB
    auto_open_decisions: bool = True  # open the decision panel once per day

    @classmethod
    def load(cls) -> Config:
        journal = os.getenv("MEXOS_JOURNAL_PATH", "")
        return cls(
            db_path=Path(os.getenv("MEXOS_DB_PATH", str(DEFAULT_DB_PATH))),
            journal_path=Path(journal) if journal else None,
            auto_open_decisions=_env_flag("MEXOS_AUTO_OPEN_DECISIONS", True),
        )

    @property
    def resolved_journal_path(self) -> Path:
        if self.journal_path is not None:
            return self.journal_path
        return self.db_path.parent / DEFAULT_JOURNAL_NAME

    def validate(self) -> list[str]:
        """Return a list of config issues."""
        issues = []
        if self.db_path.exists() and self.db_path.is_dir():
            issues.append(f"Database path is a directory (MEXOS_DB_PATH): {self.db_path}")
        elif not self.db_path.exists():
            issues.append(f"Database not found at {self.db_path} (run 'mexos init')")
        if self.journal_path is not None and self.journal_path.is_dir():
            issues.append(f"Journal path is a directory (MEXOS_JOURNAL_PATH): {self.journal_path}")
        return issues
