from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..audit.models import LogEntry


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolExecutionRequest(_CamelModel):
    tool_name: str = Field(..., min_length=1)
    category: str = Field("", description="Capability category used when searching for backups.")
    params: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = Field(default=None)


class ToolResult(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    success: bool
    data: Any = None
    error: str | None = None
    tool_used: str
    was_healed: bool = False
    healing_path: list[str] | None = None
    internal_error: bool = Field(False, exclude=True)

    def to_response(self) -> dict[str, Any]:
        """Camel-cased body with absent fields omitted."""
        payload = self.model_dump(by_alias=True)
        return {key: value for key, value in payload.items() if value is not None}


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class LogEntryModel(BaseModel):
    id: UUID
    session_id: str | None = None
    type: str
    message: str
    tool_name: str | None = None
    backup_tool: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_domain(cls, entry: LogEntry) -> "LogEntryModel":
        return cls(
            id=entry.id,
            session_id=entry.session_id,
            type=entry.type.value,
            message=entry.message,
            tool_name=entry.tool_name,
            backup_tool=entry.backup_tool,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
        )


class SessionTraceResponse(BaseModel):
    session_id: str
    valid: bool
    requests: int
    entries: list[LogEntryModel] = Field(default_factory=list)
    problems: list[str] = Field(default_factory=list)


class ClearLogsResponse(BaseModel):
    cleared: int


class WarRoomStatus(BaseModel):
    healing_active: bool
    latest_type: str | None = None


class ToolModel(BaseModel):
    name: str
    category: str
    endpoint: str
    fallback_tools: list[str] = Field(default_factory=list)
    priority: int
    is_active: bool
    description: str = ""
    result_key: str | None = None
