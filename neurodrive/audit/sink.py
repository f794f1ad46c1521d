from __future__ import annotations

import asyncio
import json
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Deque

import asyncpg

from neurodrive.core.config import Settings
from neurodrive.core.logging import get_logger
from neurodrive.db.models import ensure_schema, system_logs
from neurodrive.tools.exceptions import AuditSinkError

from .broadcaster import LogBroadcaster, LogSubscription
from .models import LogDraft, LogEntry, LogType

__all__ = [
    "AuditLogSink",
    "InMemoryAuditLogSink",
    "PostgresAuditLogSink",
    "build_audit_sink",
]

logger = get_logger(name=__name__)

TimestampFactory = Callable[[], datetime]

NOTIFY_CHANNEL = "system_logs_inserted"
# Postgres rejects NOTIFY payloads of 8000 bytes or more
MAX_NOTIFY_BYTES = 7_900


class AuditLogSink:
    """Append-only, time-ordered store of War Room entries."""

    def __init__(self, *, broadcaster: LogBroadcaster | None = None, now: TimestampFactory | None = None) -> None:
        self._broadcaster = broadcaster or LogBroadcaster()
        self._now: TimestampFactory = now or (lambda: datetime.now(timezone.utc))

    async def append(self, draft: LogDraft) -> LogEntry:
        entry = draft.materialize(created_at=self._now())
        await self._insert(entry)
        self._after_insert(entry)
        return entry

    async def latest(self, limit: int = 50, *, session_id: str | None = None) -> list[LogEntry]:
        """Return up to ``limit`` entries, newest first."""
        raise NotImplementedError

    async def for_session(self, session_id: str) -> list[LogEntry]:
        """Return one session's entries in write order."""
        raise NotImplementedError

    async def clear(self) -> int:
        raise NotImplementedError

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[LogSubscription]:
        async with self._broadcaster.subscribe() as subscription:
            yield subscription

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def _insert(self, entry: LogEntry) -> None:
        raise NotImplementedError

    def _after_insert(self, entry: LogEntry) -> None:
        self._broadcaster.publish(entry)


class InMemoryAuditLogSink(AuditLogSink):
    def __init__(
        self,
        *,
        max_entries: int = 5_000,
        broadcaster: LogBroadcaster | None = None,
        now: TimestampFactory | None = None,
    ) -> None:
        super().__init__(broadcaster=broadcaster, now=now)
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, max_entries))
        self._lock = asyncio.Lock()

    async def _insert(self, entry: LogEntry) -> None:
        async with self._lock:
            self._entries.append(entry)

    async def latest(self, limit: int = 50, *, session_id: str | None = None) -> list[LogEntry]:
        async with self._lock:
            snapshot = list(self._entries)
        selected: list[LogEntry] = []
        for entry in reversed(snapshot):
            if session_id is not None and entry.session_id != session_id:
                continue
            selected.append(entry)
            if len(selected) >= limit:
                break
        return selected

    async def for_session(self, session_id: str) -> list[LogEntry]:
        async with self._lock:
            return [entry for entry in self._entries if entry.session_id == session_id]

    async def clear(self) -> int:
        async with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed


class PostgresAuditLogSink(AuditLogSink):
    """``system_logs`` table backend; new rows are pushed through LISTEN/NOTIFY."""

    _INSERT = f"""
        WITH inserted AS (
            INSERT INTO system_logs (id, session_id, type, message, tool_name, backup_tool, metadata, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8)
            RETURNING id
        )
        SELECT pg_notify('{NOTIFY_CHANNEL}', $9) FROM inserted
    """

    _COLUMNS = "id, session_id, type, message, tool_name, backup_tool, metadata, created_at"

    _LATEST = f"""
        SELECT {_COLUMNS}
        FROM system_logs
        WHERE ($2::text IS NULL OR session_id = $2)
        ORDER BY created_at DESC, seq DESC
        LIMIT $1
    """

    _FOR_SESSION = f"""
        SELECT {_COLUMNS}
        FROM system_logs
        WHERE session_id = $1
        ORDER BY created_at ASC, seq ASC
    """

    _CLEAR = "DELETE FROM system_logs"

    def __init__(
        self,
        pool: Any,
        *,
        broadcaster: LogBroadcaster | None = None,
        now: TimestampFactory | None = None,
    ) -> None:
        super().__init__(broadcaster=broadcaster, now=now)
        self._pool_or_coroutine = pool
        self._pool: Any | None = None
        self._listener: Any | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, broadcaster: LogBroadcaster | None = None) -> "PostgresAuditLogSink":
        pool = asyncpg.create_pool(
            dsn=str(settings.postgres.dsn),
            min_size=settings.postgres.pool_min_size,
            max_size=settings.postgres.pool_max_size,
        )
        return cls(pool, broadcaster=broadcaster)

    async def start(self) -> None:
        pool = await self._ensure_pool()
        await ensure_schema(pool, tables=(system_logs,))
        self._listener = await pool.acquire()
        await self._listener.add_listener(NOTIFY_CHANNEL, self._on_notify)

    async def close(self) -> None:
        if self._listener is not None:
            await self._listener.remove_listener(NOTIFY_CHANNEL, self._on_notify)
            await self._pool.release(self._listener)
            self._listener = None
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _insert(self, entry: LogEntry) -> None:
        notification = entry.model_dump_json()
        if len(notification.encode("utf-8")) > MAX_NOTIFY_BYTES:
            notification = entry.model_copy(update={"metadata": {"truncated": True}}).model_dump_json()
        await self._execute(
            self._INSERT,
            entry.id,
            entry.session_id,
            entry.type.value,
            entry.message,
            entry.tool_name,
            entry.backup_tool,
            json.dumps(entry.metadata, default=str),
            entry.created_at,
            notification,
        )

    def _after_insert(self, entry: LogEntry) -> None:
        # The NOTIFY round trip publishes the entry, including rows written by other workers.
        return None

    def _on_notify(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        try:
            entry = LogEntry.model_validate_json(payload)
        except ValueError as exc:
            logger.warning("war_room_notification_invalid", channel=channel, error=str(exc))
            return
        self._broadcaster.publish(entry)

    async def latest(self, limit: int = 50, *, session_id: str | None = None) -> list[LogEntry]:
        rows = await self._fetch(self._LATEST, limit, session_id)
        return [self._row_to_entry(row) for row in rows]

    async def for_session(self, session_id: str) -> list[LogEntry]:
        rows = await self._fetch(self._FOR_SESSION, session_id)
        return [self._row_to_entry(row) for row in rows]

    async def clear(self) -> int:
        status = await self._execute(self._CLEAR)
        # asyncpg returns the command tag, e.g. "DELETE 12"
        try:
            return int(str(status).rsplit(" ", 1)[-1])
        except ValueError:
            return 0

    async def _execute(self, query: str, *args: Any) -> Any:
        try:
            pool = await self._ensure_pool()
            async with pool.acquire() as connection:
                return await connection.execute(query, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise AuditSinkError(f"System log write failed: {exc}") from exc

    async def _fetch(self, query: str, *args: Any) -> list[Any]:
        try:
            pool = await self._ensure_pool()
            async with pool.acquire() as connection:
                return list(await connection.fetch(query, *args))
        except (asyncpg.PostgresError, OSError) as exc:
            raise AuditSinkError(f"System log read failed: {exc}") from exc

    async def _ensure_pool(self) -> Any:
        if self._pool is None:
            pool = self._pool_or_coroutine
            if hasattr(pool, "__await__"):
                pool = await pool
            self._pool = pool
        return self._pool

    @staticmethod
    def _row_to_entry(row: Any) -> LogEntry:
        metadata = row["metadata"]
        if isinstance(metadata, str):
            try:
                metadata = json.loads(metadata)
            except json.JSONDecodeError:
                metadata = {"raw": metadata}
        return LogEntry(
            id=row["id"],
            session_id=row["session_id"],
            type=LogType(row["type"]),
            message=row["message"],
            tool_name=row["tool_name"],
            backup_tool=row["backup_tool"],
            metadata=dict(metadata or {}),
            created_at=row["created_at"],
        )


def build_audit_sink(settings: Settings, *, broadcaster: LogBroadcaster | None = None) -> AuditLogSink:
    broadcaster = broadcaster or LogBroadcaster(settings.audit.subscriber_queue_size)
    if settings.audit.backend == "postgres":
        logger.info("war_room_sink_postgres_enabled", environment=settings.environment)
        return PostgresAuditLogSink.from_settings(settings, broadcaster=broadcaster)
    logger.info("war_room_sink_in_memory", max_entries=settings.audit.max_entries)
    return InMemoryAuditLogSink(max_entries=settings.audit.max_entries, broadcaster=broadcaster)
