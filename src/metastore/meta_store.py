#!/usr/bin/env python3
"""
SQLite-backed goal store.

Goals live in an in-memory SQLite database. After every mutation the whole
database image is serialized into a durable key-value slot, and the next
process restores it from there. The engine runtime check is the only step
that leaves the event loop (via asyncio.to_thread); statements run inline.
"""
import asyncio
import contextlib
import sqlite3
from datetime import datetime, timezone
from types import ModuleType
from typing import Any, Callable

from pydantic import ValidationError

from .config_loader import DEFAULT_STORAGE_KEY, Config
from .errors import (
    EngineLoadError,
    InvalidRecordError,
    PersistError,
    QueryError,
    SnapshotDecodeError,
    StoreResult,
)
from .kv_store import JsonFileKeyValueStore, KeyValueStore
from .logging_setup import get_logger
from .models import CREATE_SCHEMA_SQL, MetaRecord, MetaTable
from .snapshot import decode_snapshot, encode_snapshot

VERSION = "v0.1.0"

logger = get_logger(__name__)

_RECORD_COLUMNS = "device_id, filter_type, period_index, value, created_at, updated_at"
_KEY_FILTER = "device_id = ? AND filter_type = ? AND period_index = ?"


def load_engine() -> ModuleType:
    """Return the sqlite3 module once it is known to support snapshots."""
    if not (hasattr(sqlite3.Connection, "serialize") and hasattr(sqlite3.Connection, "deserialize")):
        raise EngineLoadError(
            f"sqlite3 (SQLite {sqlite3.sqlite_version}) lacks serialize/deserialize; "
            "Python 3.11+ is required"
        )
    return sqlite3


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_ts(ts: datetime) -> str:
    return ts.isoformat(timespec="microseconds")


class MetaStore:
    """
    Goal store over the ``meta`` and ``activation_meta`` tables.

    Construct one per application and hand it to every consumer. Lookups
    fall back to fixed defaults; no CRUD method raises, each returns a
    StoreResult. Only initialization failures (engine unavailable, corrupt
    slot image) propagate.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Callable[[], datetime] = _utc_now,
        engine_loader: Callable[[], ModuleType] = load_engine,
    ):
        self.kv_store = kv_store
        self.storage_key = storage_key
        self._clock = clock
        self._engine_loader = engine_loader

        self._conn: sqlite3.Connection | None = None
        self._init_task: asyncio.Task | None = None

    # ── Lifecycle ────────────────────────────────────────────────────

    async def initialize(self) -> sqlite3.Connection:
        """Return the live connection, creating or restoring it on first use.

        Concurrent first callers share one pending initialization. A failed
        initialization is forgotten so the next call tries again.
        """
        if self._conn is not None:
            return self._conn

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        task = self._init_task

        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and (task.cancelled() or task.exception() is not None):
                if self._init_task is task:
                    self._init_task = None

    async def _initialize(self) -> sqlite3.Connection:
        engine = await asyncio.to_thread(self._engine_loader)

        payload = self.kv_store.get(self.storage_key)
        conn = engine.connect(":memory:")
        conn.row_factory = engine.Row

        try:
            if payload is not None:
                image = decode_snapshot(payload)
                try:
                    conn.deserialize(image)
                    conn.executescript(CREATE_SCHEMA_SQL)
                except sqlite3.Error as e:
                    raise SnapshotDecodeError(f"slot image is not a usable database: {e}") from e
                logger.info(
                    "📂 Restored goal database from slot %r (%d bytes)",
                    self.storage_key, len(image),
                )
            else:
                conn.executescript(CREATE_SCHEMA_SQL)
                logger.info("Created empty goal database for slot %r", self.storage_key)
        except BaseException:
            conn.close()
            raise

        self._conn = conn
        if payload is None:
            self._persist()
        return conn

    async def close(self) -> None:
        """Close the connection. The next call re-initializes from the slot.

        A pending first initialization is cancelled; its waiters see
        CancelledError.
        """
        task = self._init_task
        self._init_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ── Persistence ──────────────────────────────────────────────────

    def _persist(self) -> PersistError | None:
        """Write the whole database image to the slot."""
        if self._conn is None:
            return None
        try:
            payload = encode_snapshot(self._conn.serialize())
            self.kv_store.set(self.storage_key, payload)
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to persist goal database to slot %r: %s", self.storage_key, e)
            return PersistError(str(e))
        logger.debug("Persisted goal database (%d chars)", len(payload))
        return None

    # ── Generic table operations ─────────────────────────────────────

    async def _load(
        self, table: MetaTable, device_id: Any, filter_type: str, period_index: int
    ) -> StoreResult[float]:
        default = table.default_for(filter_type)
        conn = await self.initialize()

        try:
            row = conn.execute(
                f"SELECT value FROM {table.value} WHERE {_KEY_FILTER}",
                (str(device_id), filter_type, period_index),
            ).fetchone()
        except sqlite3.Error as e:
            logger.error("Failed to load %s for device %s: %s", table.label, device_id, e)
            return StoreResult.failure(QueryError(str(e)), value=default)

        if row is None:
            return StoreResult.success(default, defaulted=True)
        return StoreResult.success(float(row["value"]))

    async def _save(
        self,
        table: MetaTable,
        device_id: Any,
        filter_type: str,
        period_index: int,
        value: Any,
    ) -> StoreResult[MetaRecord]:
        now = self._clock()
        try:
            record = MetaRecord(
                device_id=device_id,
                filter_type=filter_type,
                period_index=period_index,
                value=value,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as e:
            logger.error("Rejected %s for device %s: %s", table.label, device_id, e)
            return StoreResult.failure(InvalidRecordError(str(e)))

        conn = await self.initialize()

        # Replacing the row also resets created_at
        try:
            with conn:
                conn.execute(
                    f"INSERT OR REPLACE INTO {table.value} ({_RECORD_COLUMNS})"
                    " VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        record.device_id,
                        record.filter_type,
                        record.period_index,
                        record.value,
                        _format_ts(now),
                        _format_ts(now),
                    ),
                )
        except sqlite3.Error as e:
            logger.error("Failed to save %s for device %s: %s", table.label, device_id, e)
            return StoreResult.failure(QueryError(str(e)))

        error = self._persist()
        if error is not None:
            return StoreResult.failure(error)

        logger.info("💾 Saved %s for device %s: %s", table.label, record.device_id, record.value)
        return StoreResult.success(record)

    async def _list(self, table: MetaTable, device_id: Any) -> StoreResult[list[MetaRecord]]:
        conn = await self.initialize()

        try:
            rows = conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM {table.value}"
                " WHERE device_id = ? ORDER BY updated_at DESC, id DESC",
                (str(device_id),),
            ).fetchall()
            records = [MetaRecord(**dict(row)) for row in rows]
        except (sqlite3.Error, ValidationError) as e:
            logger.error("Failed to list %ss for device %s: %s", table.label, device_id, e)
            return StoreResult.failure(QueryError(str(e)), value=[])

        return StoreResult.success(records)

    async def _delete(
        self, table: MetaTable, device_id: Any, filter_type: str, period_index: int
    ) -> StoreResult[bool]:
        conn = await self.initialize()

        try:
            with conn:
                deleted = conn.execute(
                    f"DELETE FROM {table.value} WHERE {_KEY_FILTER}",
                    (str(device_id), filter_type, period_index),
                ).rowcount
        except sqlite3.Error as e:
            logger.error("Failed to delete %s for device %s: %s", table.label, device_id, e)
            return StoreResult.failure(QueryError(str(e)))

        error = self._persist()
        if error is not None:
            return StoreResult.failure(error)

        if deleted:
            logger.info("🗑️ Deleted %s for device %s", table.label, device_id)
        return StoreResult.success(deleted > 0)

    # ── Value goals (meta) ───────────────────────────────────────────

    async def load_value(self, device_id: Any, filter_type: str, period_index: int) -> StoreResult[float]:
        """Stored goal, or 10000 when the triple was never saved."""
        return await self._load(MetaTable.META, device_id, filter_type, period_index)

    async def save_value(
        self, device_id: Any, filter_type: str, period_index: int, value: Any
    ) -> StoreResult[MetaRecord]:
        """Insert or replace a goal and persist the database."""
        return await self._save(MetaTable.META, device_id, filter_type, period_index, value)

    async def list_all(self, device_id: Any) -> StoreResult[list[MetaRecord]]:
        """All goals of a device, most recently updated first."""
        return await self._list(MetaTable.META, device_id)

    async def delete_value(self, device_id: Any, filter_type: str, period_index: int) -> StoreResult[bool]:
        """Delete a goal; ``value`` tells whether a row existed."""
        return await self._delete(MetaTable.META, device_id, filter_type, period_index)

    # ── Activation goals (activation_meta) ───────────────────────────

    async def load_activation(
        self, device_id: Any, filter_type: str, period_index: int
    ) -> StoreResult[float]:
        """Stored activation goal, or 24 for daily and 720 otherwise."""
        return await self._load(MetaTable.ACTIVATION, device_id, filter_type, period_index)

    async def save_activation(
        self, device_id: Any, filter_type: str, period_index: int, value: Any
    ) -> StoreResult[MetaRecord]:
        return await self._save(MetaTable.ACTIVATION, device_id, filter_type, period_index, value)

    async def list_activation(self, device_id: Any) -> StoreResult[list[MetaRecord]]:
        return await self._list(MetaTable.ACTIVATION, device_id)

    async def delete_activation(
        self, device_id: Any, filter_type: str, period_index: int
    ) -> StoreResult[bool]:
        return await self._delete(MetaTable.ACTIVATION, device_id, filter_type, period_index)

    # ── Both tables ──────────────────────────────────────────────────

    async def clear_all(self) -> StoreResult[int]:
        """Delete every row from both tables; ``value`` is the row count removed."""
        conn = await self.initialize()

        try:
            removed = 0
            with conn:
                for table in MetaTable:
                    removed += conn.execute(f"DELETE FROM {table.value}").rowcount
        except sqlite3.Error as e:
            logger.error("Failed to clear goal database: %s", e)
            return StoreResult.failure(QueryError(str(e)))

        error = self._persist()
        if error is not None:
            return StoreResult.failure(error)

        logger.info("✅ Goal database cleared (%d rows)", removed)
        return StoreResult.success(removed)


async def create_meta_store(
    config: Config | None = None,
    kv_store: KeyValueStore | None = None,
) -> MetaStore:
    """Create and initialize a goal store from configuration."""
    if config is None:
        config = Config()
    if kv_store is None:
        kv_store = JsonFileKeyValueStore(config.storage.kv_path)
    store = MetaStore(kv_store, storage_key=config.storage.storage_key)
    await store.initialize()
    return store
