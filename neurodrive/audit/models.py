from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class LogType(str, Enum):
    INFO = "info"
    HEALING = "healing"
    ERROR = "error"
    SUCCESS = "success"


class LogEntry(BaseModel):
    """One orchestration event as shown in the War Room."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    session_id: str | None = None
    type: LogType
    message: str
    tool_name: str | None = None
    backup_tool: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LogDraft(BaseModel):
    """An entry before the sink assigns its identity and timestamp."""

    session_id: str | None = None
    type: LogType
    message: str
    tool_name: str | None = None
    backup_tool: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def materialize(self, *, created_at: datetime | None = None) -> LogEntry:
        payload = self.model_dump()
        if created_at is not None:
            payload["created_at"] = created_at
        return LogEntry(**payload)
