from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from ..audit.sink import AuditLogSink
from ..core.config import Settings
from ..core.logging import get_logger
from ..dependencies import get_app_settings, get_audit_sink, get_orchestrator, get_tool_registry
from ..orchestration.healing import HealingOrchestrator
from ..orchestration.trace import healing_active, split_requests, validate_trace
from ..schemas.orchestrator import (
    ClearLogsResponse,
    ErrorResponse,
    LogEntryModel,
    SessionTraceResponse,
    ToolExecutionRequest,
    ToolModel,
    WarRoomStatus,
)
from ..tools.exceptions import ToolNotFoundError
from ..tools.registry import ToolRegistry

logger = get_logger(name=__name__)

router = APIRouter()

STREAM_KEEPALIVE_SECONDS = 15.0


def _format_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _error_response(message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post("/tool-orchestrator", tags=["orchestration"])
async def execute_tool(
    request: Request,
    orchestrator: HealingOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    try:
        raw_payload = await request.json()
    except ValueError:
        logger.warning("tool_orchestrator_invalid_json")
        return _error_response("Request body must be valid JSON")
    if not isinstance(raw_payload, dict):
        return _error_response("Request body must be a JSON object")
    try:
        payload = ToolExecutionRequest.model_validate(raw_payload)
    except ValidationError as exc:
        logger.warning("tool_orchestrator_invalid_request", errors=exc.error_count())
        return _error_response(f"Invalid request: {exc.errors(include_url=False)[0]['msg']}")

    logger.info(
        "tool_orchestrator_request",
        tool=payload.tool_name,
        category=payload.category,
        session_id=payload.session_id,
    )
    result = await orchestrator.execute(payload)
    if result.internal_error:
        return _error_response(result.error or "Unknown error")
    return JSONResponse(content=result.to_response())


@router.get("/logs", response_model=list[LogEntryModel], tags=["war-room"])
async def latest_logs(
    limit: int | None = Query(default=None, ge=1, le=1_000),
    session_id: str | None = Query(default=None),
    sink: AuditLogSink = Depends(get_audit_sink),
    settings: Settings = Depends(get_app_settings),
) -> list[LogEntryModel]:
    entries = await sink.latest(limit or settings.audit.default_read_limit, session_id=session_id)
    return [LogEntryModel.from_domain(entry) for entry in entries]


@router.delete("/logs", response_model=ClearLogsResponse, tags=["war-room"])
async def clear_logs(sink: AuditLogSink = Depends(get_audit_sink)) -> ClearLogsResponse:
    cleared = await sink.clear()
    logger.info("war_room_cleared", cleared=cleared)
    return ClearLogsResponse(cleared=cleared)


@router.get("/logs/status", response_model=WarRoomStatus, tags=["war-room"])
async def war_room_status(sink: AuditLogSink = Depends(get_audit_sink)) -> WarRoomStatus:
    newest = await sink.latest(1)
    return WarRoomStatus(
        healing_active=healing_active(newest),
        latest_type=newest[0].type.value if newest else None,
    )


@router.get("/logs/sessions/{session_id}", response_model=SessionTraceResponse, tags=["war-room"])
async def session_trace(session_id: str, sink: AuditLogSink = Depends(get_audit_sink)) -> SessionTraceResponse:
    entries = await sink.for_session(session_id)
    if not entries:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No entries for session")
    runs = split_requests(entries)
    problems = [report.problem for report in map(validate_trace, runs) if report.problem]
    return SessionTraceResponse(
        session_id=session_id,
        valid=not problems,
        requests=len(runs),
        entries=[LogEntryModel.from_domain(entry) for entry in entries],
        problems=problems,
    )


@router.get("/logs/stream", tags=["war-room"])
async def stream_logs(request: Request, sink: AuditLogSink = Depends(get_audit_sink)) -> StreamingResponse:
    async def event_stream() -> AsyncIterator[str]:
        async with sink.subscribe() as subscription:
            yield _format_sse("ready", {})
            while True:
                if await request.is_disconnected():
                    break
                try:
                    entry = await subscription.get(timeout=STREAM_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield _format_sse("log", LogEntryModel.from_domain(entry).model_dump(mode="json"))

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=headers)


@router.get("/tools", response_model=list[ToolModel], tags=["tools"])
async def list_tools(registry: ToolRegistry = Depends(get_tool_registry)) -> list[ToolModel]:
    return [ToolModel(**tool.to_dict()) for tool in await registry.list()]


@router.get("/tools/{name}", response_model=ToolModel, tags=["tools"])
async def get_tool(name: str, registry: ToolRegistry = Depends(get_tool_registry)) -> ToolModel:
    try:
        tool = await registry.require(name)
    except ToolNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ToolModel(**tool.to_dict())


@router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
