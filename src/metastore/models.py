#!/usr/bin/env python3
"""Record models and table definitions for the goal store."""
import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

VERSION = "v0.1.0"

DEFAULT_META_VALUE = 10000.0
DEFAULT_ACTIVATION_DAILY = 24.0
DEFAULT_ACTIVATION_OTHER = 720.0

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class MetaTable(str, Enum):
    """The two goal tables. Same shape, different meaning."""

    META = "meta"                        # value goals
    ACTIVATION = "activation_meta"       # activation-time goals

    def default_for(self, filter_type: str) -> float:
        """Value returned for a triple that was never saved."""
        if self is MetaTable.META:
            return DEFAULT_META_VALUE
        if filter_type == "daily":
            return DEFAULT_ACTIVATION_DAILY
        return DEFAULT_ACTIVATION_OTHER

    @property
    def label(self) -> str:
        return "goal" if self is MetaTable.META else "activation goal"


class MetaRecord(BaseModel):
    """One goal row. Used for both tables."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    filter_type: str
    period_index: int
    value: float
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("device_id", mode="before")
    @classmethod
    def _device_id_as_text(cls, v: Any) -> str:
        if v is None:
            raise ValueError("device_id is required")
        return str(v)

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_number(cls, v: Any) -> Any:
        # Strings keep their leading number and drop the rest ("12.5kg" -> 12.5)
        if isinstance(v, str):
            match = _LEADING_NUMBER.match(v.strip())
            if match is None:
                raise ValueError(f"no number in {v!r}")
            return float(match.group(0))
        return v

    def key(self) -> tuple[str, str, int]:
        return (self.device_id, self.filter_type, self.period_index)


# Identical DDL for both tables; the table name is the only difference
_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id TEXT NOT NULL,
    filter_type TEXT NOT NULL,
    period_index INTEGER NOT NULL,
    value REAL NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(device_id, filter_type, period_index)
);
"""

CREATE_SCHEMA_SQL = "".join(_TABLE_DDL.format(table=t.value) for t in MetaTable)
