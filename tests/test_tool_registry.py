from __future__ import annotations

import json

import pytest

from neurodrive.core.config import RegistrySettings
from neurodrive.tools.exceptions import ToolNotFoundError
from neurodrive.tools.models import Tool
from neurodrive.tools.registry import (
    InMemoryToolRegistry,
    PostgresToolRegistry,
    build_tool_registry,
    load_catalog,
    normalize_tool_name,
    rank_tools,
)
from tests.helpers.stubs import make_settings, tool


def test_normalize_tool_name() -> None:
    assert normalize_tool_name("  Amadeus_Flights ") == "amadeus_flights"
    with pytest.raises(TypeError):
        normalize_tool_name(None)  # type: ignore[arg-type]


def test_rank_tools_orders_by_priority_then_name() -> None:
    tools = [tool("zeta", priority=1), tool("alpha", priority=1), tool("beta", priority=0)]

    assert [item.name for item in rank_tools(tools)] == ["beta", "alpha", "zeta"]
    assert [item.name for item in rank_tools(tools, "alphabetical")] == ["alpha", "beta", "zeta"]
    with pytest.raises(ValueError):
        rank_tools(tools, "random")  # type: ignore[arg-type]


def test_tool_from_mapping_accepts_comma_separated_fallbacks() -> None:
    parsed = Tool.from_mapping(
        {
            "name": "amadeus_flights",
            "category": "travel",
            "endpoint": "flight-search",
            "fallback_tools": "mock_flights, backup_flights,",
            "priority": "2",
        }
    )

    assert parsed.fallback_tools == ("mock_flights", "backup_flights")
    assert parsed.priority == 2
    assert parsed.is_active is True
    assert parsed.result_key is None
    assert parsed.to_dict()["fallback_tools"] == ["mock_flights", "backup_flights"]


@pytest.mark.asyncio
async def test_in_memory_lookup_is_case_insensitive() -> None:
    registry = InMemoryToolRegistry([tool("Amadeus_Flights")])

    assert (await registry.get("amadeus_flights")).name == "Amadeus_Flights"
    assert await registry.get("missing") is None
    with pytest.raises(ToolNotFoundError) as excinfo:
        await registry.require("missing")
    assert excinfo.value.tool_name == "missing"


@pytest.mark.asyncio
async def test_fetch_active_skips_inactive_and_unknown() -> None:
    registry = InMemoryToolRegistry(
        [tool("b", priority=2), tool("c", priority=1), tool("d", is_active=False)]
    )

    active = await registry.fetch_active(["b", "c", "d", "ghost"])

    assert [item.name for item in active] == ["c", "b"]


@pytest.mark.asyncio
async def test_match_category_excludes_and_limits() -> None:
    registry = InMemoryToolRegistry(
        [
            tool("primary", priority=0),
            tool("one", priority=1),
            tool("two", priority=2),
            tool("three", priority=3),
            tool("four", priority=4),
            tool("sunny", category="weather", priority=0),
        ]
    )

    matches = await registry.match_category("travel", exclude="PRIMARY")

    assert [item.name for item in matches] == ["one", "two", "three"]
    assert await registry.match_category("travel", limit=0) == []


@pytest.mark.asyncio
async def test_register_and_unregister_replace_entries() -> None:
    registry = InMemoryToolRegistry([tool("mock_flights", priority=10)])
    registry.register(tool("mock_flights", priority=5))

    assert (await registry.get("mock_flights")).priority == 5
    registry.unregister("MOCK_FLIGHTS")
    assert await registry.list() == []
    registry.register(tool("a"))
    registry.clear()
    assert await registry.list() == []


def test_load_catalog_accepts_wrapped_and_bare_lists(tmp_path) -> None:
    records = [{"name": "mock_flights", "category": "travel", "endpoint": "flight-search-mock"}]
    bare = tmp_path / "bare.json"
    bare.write_text(json.dumps(records), encoding="utf-8")
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"tools": records}), encoding="utf-8")
    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"tools": "nope"}), encoding="utf-8")

    assert [item.name for item in load_catalog(bare)] == ["mock_flights"]
    assert [item.name for item in load_catalog(wrapped)] == ["mock_flights"]
    with pytest.raises(ValueError):
        load_catalog(broken)


@pytest.mark.asyncio
async def test_build_registry_seeds_default_flight_tools() -> None:
    registry = build_tool_registry(make_settings())

    amadeus = await registry.get("amadeus_flights")
    mock = await registry.get("mock_flights")
    assert isinstance(registry, InMemoryToolRegistry)
    assert amadeus is not None and amadeus.result_key == "flights"
    assert mock is not None and mock.category == amadeus.category


@pytest.mark.asyncio
async def test_build_registry_prefers_catalog_file(tmp_path) -> None:
    catalog = tmp_path / "tools.json"
    catalog.write_text(
        json.dumps([{"name": "weather_api", "category": "weather", "endpoint": "weather"}]),
        encoding="utf-8",
    )

    registry = build_tool_registry(make_settings(registry=RegistrySettings(catalog_path=str(catalog))))

    assert [item.name for item in await registry.list()] == ["weather_api"]


@pytest.mark.asyncio
async def test_build_registry_selects_postgres_backend() -> None:
    settings = make_settings(registry=RegistrySettings(backend="postgres"))

    registry = build_tool_registry(settings)

    assert isinstance(registry, PostgresToolRegistry)
