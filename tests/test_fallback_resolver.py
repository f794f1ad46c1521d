from __future__ import annotations

import pytest

from neurodrive.core import metrics
from neurodrive.core.config import ResolverSettings
from neurodrive.orchestration.enums import FallbackStrategy
from neurodrive.orchestration.resolver import FallbackResolver
from neurodrive.tools.exceptions import RegistryAccessError
from neurodrive.tools.registry import InMemoryToolRegistry
from tests.helpers.stubs import tool


def _names(candidates) -> list[str]:
    return [candidate.name for candidate in candidates]


@pytest.mark.asyncio
async def test_explicit_list_ordered_by_priority_and_filtered() -> None:
    registry = InMemoryToolRegistry(
        [
            tool("a", fallback_tools=["c", "b", "inactive", "missing"]),
            tool("b", priority=5),
            tool("c", priority=1),
            tool("inactive", priority=0, is_active=False),
            tool("peer", priority=0),
        ]
    )
    plan = await FallbackResolver(registry).plan("travel", "a")

    assert plan.strategy is FallbackStrategy.EXPLICIT
    assert _names(plan.candidates) == ["c", "b"]


@pytest.mark.asyncio
async def test_explicit_list_never_returns_failed_tool() -> None:
    registry = InMemoryToolRegistry([tool("a", fallback_tools=["a", "b", "B"]), tool("b")])

    assert _names(await FallbackResolver(registry).resolve("travel", "a")) == ["b"]


@pytest.mark.asyncio
async def test_all_inactive_explicit_list_falls_through_to_category() -> None:
    registry = InMemoryToolRegistry(
        [
            tool("a", fallback_tools=["b"]),
            tool("b", is_active=False),
            tool("c", priority=3),
        ]
    )
    plan = await FallbackResolver(registry).plan("travel", "a")

    assert plan.strategy is FallbackStrategy.CATEGORY
    assert _names(plan.candidates) == ["c"]


@pytest.mark.asyncio
async def test_category_search_is_capped_and_ranked() -> None:
    registry = InMemoryToolRegistry(
        [tool("a")]
        + [tool(name, priority=priority) for name, priority in [("e", 1), ("d", 2), ("c", 3), ("b", 4)]]
        + [tool("weather", category="weather", priority=0), tool("off", priority=0, is_active=False)]
    )

    by_priority = await FallbackResolver(registry).resolve("travel", "a")
    alphabetical = await FallbackResolver(
        registry, ResolverSettings(category_ranking="alphabetical", category_match_limit=2)
    ).resolve("travel", "a")

    assert _names(by_priority) == ["e", "d", "c"]
    assert _names(alphabetical) == ["b", "c"]


@pytest.mark.asyncio
async def test_unknown_tool_uses_category_search() -> None:
    registry = InMemoryToolRegistry([tool("mock_flights")])
    plan = await FallbackResolver(registry).plan("travel", "ghost")

    assert plan.strategy is FallbackStrategy.CATEGORY
    assert _names(plan.candidates) == ["mock_flights"]


@pytest.mark.asyncio
async def test_no_candidates_yields_empty_plan() -> None:
    registry = InMemoryToolRegistry([tool("a", category="weather")])
    plan = await FallbackResolver(registry).plan("weather", "a")

    assert plan.strategy is FallbackStrategy.NONE
    assert not plan
    assert await FallbackResolver(registry).resolve("", "a") == []


@pytest.mark.asyncio
async def test_registry_errors_resolve_to_no_candidates(monkeypatch: pytest.MonkeyPatch) -> None:
    class BrokenRegistry(InMemoryToolRegistry):
        async def match_category(self, *args, **kwargs):
            raise RegistryAccessError("connection reset")

    strategies: list[str] = []
    monkeypatch.setattr(metrics, "record_fallback_resolution", lambda *, strategy: strategies.append(strategy))

    plan = await FallbackResolver(BrokenRegistry([tool("a")])).plan("travel", "a")

    assert plan.candidates == []
    assert strategies == ["none"]
