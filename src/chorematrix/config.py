"""Configuration constants for chorematrix."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.environ.get("CHOREMATRIX_DATABASE_URL", "sqlite:///chorematrix.db")
STORAGE_PREFIX = os.environ.get("CHOREMATRIX_STORAGE_PREFIX", "")
LOG_PATH = os.environ.get("CHOREMATRIX_LOG_PATH") or None
DEFAULT_CATEGORY = os.environ.get("CHOREMATRIX_DEFAULT_CATEGORY", "TO_DO")

DEFINITIONS_KEY = "choreDefinitions"
INSTANCES_KEY = "choreInstances"
KANBAN_ORDERS_KEY = "kanbanChoreOrders"

DESCRIPTION_PREVIEW_LENGTH = 30


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings resolved from the environment."""

    database_url: str = DATABASE_URL
    storage_prefix: str = STORAGE_PREFIX
    log_path: Optional[Path] = Path(LOG_PATH) if LOG_PATH else None
    default_category: str = DEFAULT_CATEGORY

    @classmethod
    def from_env(cls) -> "Settings":
        log_path = os.environ.get("CHOREMATRIX_LOG_PATH") or None
        return cls(
            database_url=os.environ.get("CHOREMATRIX_DATABASE_URL", DATABASE_URL),
            storage_prefix=os.environ.get("CHOREMATRIX_STORAGE_PREFIX", STORAGE_PREFIX),
            log_path=Path(log_path) if log_path else None,
            default_category=os.environ.get("CHOREMATRIX_DEFAULT_CATEGORY", DEFAULT_CATEGORY),
        )

    def storage_key(self, name: str) -> str:
        return f"{self.storage_prefix}{name}"


__all__ = [
    "DATABASE_URL",
    "STORAGE_PREFIX",
    "LOG_PATH",
    "DEFAULT_CATEGORY",
    "DEFINITIONS_KEY",
    "INSTANCES_KEY",
    "KANBAN_ORDERS_KEY",
    "DESCRIPTION_PREVIEW_LENGTH",
    "Settings",
]
