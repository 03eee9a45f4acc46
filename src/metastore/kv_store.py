#!/usr/bin/env python3
"""
Durable key-value slot backends.

A KeyValueStore maps string keys to string values, the same contract as a
browser's localStorage. Each set() replaces the previous value atomically.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from .logging_setup import get_logger

VERSION = "v0.1.0"

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store. Survives store re-creation, not process exit."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """All keys in one JSON object on disk, rewritten via temp file + rename."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            self._move_aside("is not JSON")
            return {}
        if not isinstance(data, dict):
            self._move_aside("does not hold an object")
            return {}
        return data

    def _move_aside(self, reason: str) -> None:
        # Damaged file is kept as .bak and the store reads as empty
        backup_path = self.path.with_suffix(self.path.suffix + ".bak")
        self.path.replace(backup_path)
        logger.error("Key-value file %s %s, moved to %s", self.path, reason, backup_path)

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix=f"{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(temp_path, self.path)
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)
