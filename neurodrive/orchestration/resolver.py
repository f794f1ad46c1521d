from __future__ import annotations

from dataclasses import dataclass, field

from neurodrive.core import metrics
from neurodrive.core.config import ResolverSettings
from neurodrive.core.logging import get_logger
from neurodrive.tools.models import Tool, ToolCandidate
from neurodrive.tools.registry import ToolRegistry, normalize_tool_name

from .enums import FallbackStrategy

logger = get_logger(name=__name__)


@dataclass(slots=True)
class FallbackPlan:
    strategy: FallbackStrategy
    candidates: list[ToolCandidate] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.candidates)


class FallbackResolver:
    """Proposes replacement tools for a failed one.

    Explicit ``fallback_tools`` always win over the category search; the category
    search only runs when the explicit list is empty or has no active member.
    """

    def __init__(self, registry: ToolRegistry, settings: ResolverSettings | None = None) -> None:
        self._registry = registry
        self._settings = settings or ResolverSettings()

    async def resolve(self, category: str, failed_tool: str) -> list[ToolCandidate]:
        plan = await self.plan(category, failed_tool)
        return plan.candidates

    async def plan(self, category: str, failed_tool: str) -> FallbackPlan:
        try:
            plan = await self._plan(category, failed_tool)
        except Exception as exc:
            logger.error(
                "fallback_resolution_failed",
                tool=failed_tool,
                category=category,
                error=str(exc),
            )
            plan = FallbackPlan(strategy=FallbackStrategy.NONE)
        metrics.record_fallback_resolution(strategy=plan.strategy.value)
        logger.info(
            "fallback_resolution_completed",
            tool=failed_tool,
            category=category,
            strategy=plan.strategy.value,
            candidates=[candidate.name for candidate in plan.candidates],
        )
        return plan

    async def _plan(self, category: str, failed_tool: str) -> FallbackPlan:
        tool = await self._registry.get(failed_tool)
        if tool is not None and tool.fallback_tools:
            explicit = await self._registry.fetch_active(list(tool.fallback_tools))
            candidates = self._candidates(explicit, failed_tool)
            if candidates:
                return FallbackPlan(strategy=FallbackStrategy.EXPLICIT, candidates=candidates)

        if category:
            matches = await self._registry.match_category(
                category,
                exclude=failed_tool,
                limit=self._settings.category_match_limit,
                ranking=self._settings.category_ranking,
            )
            candidates = self._candidates(matches, failed_tool)[: self._settings.category_match_limit]
            if candidates:
                return FallbackPlan(strategy=FallbackStrategy.CATEGORY, candidates=candidates)

        return FallbackPlan(strategy=FallbackStrategy.NONE)

    @staticmethod
    def _candidates(tools: list[Tool], failed_tool: str) -> list[ToolCandidate]:
        excluded = normalize_tool_name(failed_tool)
        seen: set[str] = set()
        candidates: list[ToolCandidate] = []
        for tool in tools:
            key = normalize_tool_name(tool.name)
            if key == excluded or key in seen or not tool.is_active:
                continue
            seen.add(key)
            candidates.append(tool.as_candidate())
        return candidates
