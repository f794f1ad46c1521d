from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Depends, Request

from .audit.recorder import WarRoomRecorder
from .audit.sink import AuditLogSink, build_audit_sink
from .core.config import Settings
from .core.logging import get_logger
from .orchestration.healing import HealingOrchestrator
from .orchestration.resolver import FallbackResolver
from .tools.invoker import ToolInvoker
from .tools.registry import ToolRegistry, build_tool_registry

logger = get_logger(name=__name__)


@dataclass(slots=True)
class ServiceContainer:
    settings: Settings
    registry: ToolRegistry
    audit_sink: AuditLogSink
    invoker: ToolInvoker
    resolver: FallbackResolver
    orchestrator: HealingOrchestrator

    async def start(self) -> None:
        await self.registry.start()
        await self.audit_sink.start()

    async def aclose(self) -> None:
        for closer in (self.invoker.aclose, self.audit_sink.close, self.registry.close):
            try:
                await closer()
            except Exception as exc:  # pragma: no cover - shutdown best effort
                logger.warning("service_shutdown_failed", component=closer.__qualname__, error=str(exc))


def build_container(
    settings: Settings,
    *,
    registry: ToolRegistry | None = None,
    audit_sink: AuditLogSink | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ServiceContainer:
    registry = registry or build_tool_registry(settings)
    audit_sink = audit_sink or build_audit_sink(settings)
    invoker = ToolInvoker(settings.invoker, http_client=http_client)
    resolver = FallbackResolver(registry, settings.resolver)
    orchestrator = HealingOrchestrator(
        registry=registry,
        invoker=invoker,
        resolver=resolver,
        recorder=WarRoomRecorder(audit_sink),
    )
    return ServiceContainer(
        settings=settings,
        registry=registry,
        audit_sink=audit_sink,
        invoker=invoker,
        resolver=resolver,
        orchestrator=orchestrator,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_app_settings(container: ServiceContainer = Depends(get_container)) -> Settings:
    return container.settings


def get_orchestrator(container: ServiceContainer = Depends(get_container)) -> HealingOrchestrator:
    return container.orchestrator


def get_audit_sink(container: ServiceContainer = Depends(get_container)) -> AuditLogSink:
    return container.audit_sink


def get_tool_registry(container: ServiceContainer = Depends(get_container)) -> ToolRegistry:
    return container.registry
