from __future__ import annotations

from typing import Any, Mapping

from neurodrive.core import metrics
from neurodrive.core.logging import get_logger

from .models import LogDraft, LogEntry, LogType
from .sink import AuditLogSink

logger = get_logger(name=__name__)


class WarRoomRecorder:
    """Writes orchestration events to the sink without ever raising.

    A failed write is reported to the process log and the request carries on.
    """

    def __init__(self, sink: AuditLogSink, *, session_id: str | None = None) -> None:
        self._sink = sink
        self._session_id = session_id

    def for_session(self, session_id: str | None) -> "WarRoomRecorder":
        return WarRoomRecorder(self._sink, session_id=session_id)

    async def record(
        self,
        entry_type: LogType,
        message: str,
        *,
        tool_name: str | None = None,
        backup_tool: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        try:
            draft = LogDraft(
                session_id=self._session_id,
                type=entry_type,
                message=message,
                tool_name=tool_name,
                backup_tool=backup_tool,
                metadata=dict(metadata or {}),
            )
            return await self._sink.append(draft)
        except Exception as exc:
            metrics.increment_audit_write_failure(entry_type=entry_type.value)
            logger.error(
                "war_room_log_failed",
                session_id=self._session_id,
                type=entry_type.value,
                log_message=message,
                error=str(exc),
            )
            return None

    async def info(self, message: str, **kwargs: Any) -> LogEntry | None:
        return await self.record(LogType.INFO, message, **kwargs)

    async def healing(self, message: str, **kwargs: Any) -> LogEntry | None:
        return await self.record(LogType.HEALING, message, **kwargs)

    async def error(self, message: str, **kwargs: Any) -> LogEntry | None:
        return await self.record(LogType.ERROR, message, **kwargs)

    async def success(self, message: str, **kwargs: Any) -> LogEntry | None:
        return await self.record(LogType.SUCCESS, message, **kwargs)
