import subprocess
from importlib.metadata import PackageNotFoundError, version

from .errors import (
    EngineLoadError,
    InvalidRecordError,
    MetaStoreError,
    PersistError,
    QueryError,
    SnapshotDecodeError,
    StoreResult,
)
from .kv_store import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .meta_store import MetaStore, create_meta_store
from .models import MetaRecord, MetaTable


def _get_version() -> str:
    """Get version from git describe, falling back to package metadata."""
    try:
        result = subprocess.run(
            ["git", "describe", "--tags"],
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            tag = result.stdout.strip()
            if tag.startswith("v"):
                return tag[1:]
            return tag
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        pass
    try:
        return version("ecoar-metastore")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()

__all__ = [
    "EngineLoadError",
    "InvalidRecordError",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "MetaRecord",
    "MetaStore",
    "MetaStoreError",
    "MetaTable",
    "PersistError",
    "QueryError",
    "SnapshotDecodeError",
    "StoreResult",
    "create_meta_store",
]
