"""
Build identity and runtime settings for the counting contract.

CONTRACT_NAME / CONTRACT_VERSION are what this build writes into the
version ledger and what the migration dispatcher compares against.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CONTRACT_NAME = "counting-contract"
CONTRACT_VERSION = "0.3.0"

DEFAULT_DB_FILENAME = "counting-contract.db"


@dataclass
class EngineSettings:
    """Settings resolved from the process environment."""

    db_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """
        Read settings from environment variables.

        COUNTING_CONTRACT_DB: sqlite file backing the contract storage.
            Unset means an in-memory store.
        """
        return cls(db_path=os.environ.get("COUNTING_CONTRACT_DB"))

    def resolve_db_path(self, cwd: Optional[str] = None) -> Optional[Path]:
        if not self.db_path:
            return None
        path = Path(self.db_path)
        if not path.is_absolute():
            path = Path(cwd or os.getcwd()) / path
        return path
