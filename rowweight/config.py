"""Weight ordering configuration.

Per-model column configuration for the weight manager plus the
environment-driven defaults it falls back to.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_WEIGHT_COLUMN = "weight"
TRANSACTIONAL_ENV_VAR = "WEIGHT_TRANSACTIONAL"


def _normalize_bool(value: str | None, default: bool = True) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


@lru_cache(maxsize=None)
def transactional_default() -> bool:
    """Return the cached default for wrapping operations in a transaction."""
    return _normalize_bool(os.getenv(TRANSACTIONAL_ENV_VAR), default=True)


def refresh_settings_cache() -> None:
    """Invalidate cached environment values (useful for tests)."""
    transactional_default.cache_clear()


class WeightConfig(BaseModel):
    """Column layout of a weighted model.

    ``weight_group_column`` left unset means every row of the table belongs
    to one global ordering group.
    """

    model_config = ConfigDict(frozen=True)

    weight_column: str = DEFAULT_WEIGHT_COLUMN
    weight_group_column: Optional[str] = None
    transactional: bool = Field(default_factory=transactional_default)

    @field_validator("weight_column")
    @classmethod
    def _weight_column_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("weight_column must be a non-empty column name")
        return value

    @field_validator("weight_group_column")
    @classmethod
    def _blank_group_column_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @property
    def grouped(self) -> bool:
        return self.weight_group_column is not None
