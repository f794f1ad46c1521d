from __future__ import annotations

from dataclasses import dataclass, field

from neurodrive.audit.recorder import WarRoomRecorder
from neurodrive.core import metrics
from neurodrive.core.logging import get_logger
from neurodrive.schemas.orchestrator import ToolExecutionRequest, ToolResult
from neurodrive.tools.invoker import ToolInvoker
from neurodrive.tools.registry import ToolRegistry

from .enums import HealingState
from .resolver import FallbackResolver

__all__ = ["HealingOrchestrator", "HealingRun"]

logger = get_logger(name=__name__)


@dataclass(slots=True)
class HealingRun:
    """Mutable bookkeeping for one request; discarded once the result is built."""

    request: ToolExecutionRequest
    state: HealingState = HealingState.LOOKUP_PRIMARY
    states: list[HealingState] = field(default_factory=lambda: [HealingState.LOOKUP_PRIMARY])
    healing_path: list[str] = field(default_factory=list)
    last_error: str | None = None

    def advance(self, state: HealingState) -> None:
        logger.debug(
            "healing_state_transition",
            tool=self.request.tool_name,
            session_id=self.request.session_id,
            source=self.state.value,
            target=state.value,
        )
        self.state = state
        self.states.append(state)


class HealingOrchestrator:
    """Runs a tool and, when it fails, walks the fallback candidates one at a time.

    Every step is appended to the War Room log in the order it happens. Attempts
    are strictly sequential so the log order is the attempt order. ``execute``
    never raises; every failure becomes a :class:`ToolResult`.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        invoker: ToolInvoker,
        resolver: FallbackResolver,
        recorder: WarRoomRecorder,
    ) -> None:
        self._registry = registry
        self._invoker = invoker
        self._resolver = resolver
        self._recorder = recorder

    async def execute(self, request: ToolExecutionRequest) -> ToolResult:
        run = HealingRun(request=request)
        metrics.mark_healing_started()
        outcome = "internal_error"
        try:
            result, outcome = await self._execute(run)
        except Exception as exc:
            logger.exception(
                "healing_orchestration_crashed",
                tool=request.tool_name,
                session_id=request.session_id,
                state=run.state.value,
                error=str(exc),
            )
            result = ToolResult(
                success=False,
                error=f"Orchestration failed: {exc}",
                tool_used=run.healing_path[-1] if run.healing_path else request.tool_name,
                was_healed=False,
                healing_path=list(run.healing_path) if len(run.healing_path) > 1 else None,
                internal_error=True,
            )
        finally:
            metrics.mark_healing_completed(outcome=outcome, attempts=len(run.healing_path))
        logger.info(
            "healing_orchestration_completed",
            tool=request.tool_name,
            session_id=request.session_id,
            outcome=outcome,
            tool_used=result.tool_used,
            states=[state.value for state in run.states],
        )
        return result

    async def _execute(self, run: HealingRun) -> tuple[ToolResult, str]:
        request = run.request
        recorder = self._recorder.for_session(request.session_id)
        primary_name = request.tool_name

        tool = await self._registry.get(primary_name)
        if tool is None:
            run.advance(HealingState.NOT_FOUND)
            await recorder.error(f"Tool not found: {primary_name}", tool_name=primary_name)
            return (
                ToolResult(success=False, error="Tool not found", tool_used=primary_name, was_healed=False),
                "not_found",
            )

        run.advance(HealingState.INVOKE_PRIMARY)
        run.healing_path.append(tool.name)
        await recorder.info(
            f"Executing primary tool: {tool.name}",
            tool_name=tool.name,
            metadata={"params": request.params},
        )
        outcome = await self._invoker.invoke(tool.name, tool.endpoint, request.params, result_key=tool.result_key)
        if outcome.success:
            run.advance(HealingState.SUCCESS)
            await recorder.success(f"{tool.name} executed successfully", tool_name=tool.name)
            return (
                ToolResult(success=True, data=outcome.data, tool_used=tool.name, was_healed=False),
                "primary",
            )

        run.last_error = outcome.error
        run.advance(HealingState.RESOLVE_FALLBACKS)
        await recorder.healing(
            f"Primary tool {tool.name} failed. Searching for backups...",
            tool_name=tool.name,
            metadata={"error": outcome.error},
        )
        candidates = await self._resolver.resolve(request.category, tool.name)

        for candidate in candidates:
            run.advance(HealingState.INVOKE_FALLBACK)
            run.healing_path.append(candidate.name)
            await recorder.healing(
                f"Attempting fallback: {candidate.name}",
                tool_name=tool.name,
                backup_tool=candidate.name,
            )
            outcome = await self._invoker.invoke(
                candidate.name,
                candidate.endpoint,
                request.params,
                result_key=candidate.result_key,
            )
            if outcome.success:
                run.advance(HealingState.SUCCESS)
                await recorder.success(
                    f"Self-healed! {candidate.name} succeeded after {tool.name} failed",
                    tool_name=candidate.name,
                    metadata={"healingPath": list(run.healing_path)},
                )
                return (
                    ToolResult(
                        success=True,
                        data=outcome.data,
                        tool_used=candidate.name,
                        was_healed=True,
                        healing_path=list(run.healing_path),
                    ),
                    "healed",
                )

            run.last_error = outcome.error
            await recorder.error(
                f"Fallback {candidate.name} also failed",
                tool_name=candidate.name,
                metadata={"error": outcome.error},
            )

        run.advance(HealingState.EXHAUSTED)
        await recorder.error(
            "All tools exhausted. Could not complete task.",
            tool_name=tool.name,
            metadata={"healingPath": list(run.healing_path), "finalError": run.last_error},
        )
        return (
            ToolResult(
                success=False,
                error=f"All tools failed. Last error: {run.last_error}",
                tool_used=run.healing_path[-1],
                was_healed=False,
                healing_path=list(run.healing_path),
            ),
            "exhausted",
        )

