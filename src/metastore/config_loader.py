#!/usr/bin/env python3
"""
Configuration for the goal store.

Dataclass-based configuration with defaults, loaded from a JSON file.
Environment variables override the file for deployment flexibility.
"""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .logging_setup import get_logger

VERSION = "v0.1.0"

logger = get_logger(__name__)

# ── Fixed identifiers ─────────────────────────────────────────────────

DEFAULT_STORAGE_KEY = "ecoar_sqlite_db"    # slot key of the serialized database
DEFAULT_KV_PATH = "~/.local/share/ecoar/storage.json"
DEFAULT_CONFIG_PATH = "~/.config/ecoar/metastore.json"


@dataclass
class StorageConfig:
    """Durable slot configuration."""

    kv_path: str = DEFAULT_KV_PATH
    storage_key: str = DEFAULT_STORAGE_KEY


@dataclass
class LoggingConfig:
    """Logging configuration."""

    verbose: bool = False
    log_file: str | None = None


@dataclass
class Config:
    """Main goal store configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        """
        Load configuration from file.

        Args:
            path: Path to config file. If None, METASTORE_CONFIG or the
                per-user default is used.

        Returns:
            Config instance with loaded values and env overrides applied.
        """
        if path is None:
            path = cls._get_default_path()

        path = Path(path).expanduser()

        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", path)
            return cls._from_dict({})

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        logger.info("Loaded config from %s", path)
        return cls._from_dict(data)

    @staticmethod
    def _get_default_path() -> Path:
        env_path = os.getenv("METASTORE_CONFIG")
        if env_path:
            return Path(env_path)
        return Path(DEFAULT_CONFIG_PATH)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from dictionary (JSON data), env vars winning."""
        storage = StorageConfig(
            kv_path=os.getenv("METASTORE_KV_PATH", data.get("KV_PATH", DEFAULT_KV_PATH)),
            storage_key=os.getenv(
                "METASTORE_STORAGE_KEY", data.get("STORAGE_KEY", DEFAULT_STORAGE_KEY)
            ),
        )
        log_cfg = LoggingConfig(
            verbose=bool(data.get("VERBOSE", False)),
            log_file=data.get("LOG_FILE"),
        )
        return cls(storage=storage, logging=log_cfg)

    def to_dict(self) -> dict[str, Any]:
        """Export config to dictionary for saving."""
        return {
            "KV_PATH": self.storage.kv_path,
            "STORAGE_KEY": self.storage.storage_key,
            "VERBOSE": self.logging.verbose,
            "LOG_FILE": self.logging.log_file,
        }

    def save(self, path: str | Path) -> None:
        """Save config to file."""
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info("Saved config to %s", path)
