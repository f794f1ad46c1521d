from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable, Literal, Sequence

import asyncpg

from neurodrive.core.config import Settings
from neurodrive.core.logging import get_logger
from neurodrive.db.models import ensure_schema
from neurodrive.db.models import tools as tools_table

from .exceptions import RegistryAccessError, ToolNotFoundError
from .models import Tool

__all__ = [
    "CategoryRanking",
    "InMemoryToolRegistry",
    "PostgresToolRegistry",
    "ToolRegistry",
    "build_tool_registry",
    "load_catalog",
    "normalize_tool_name",
    "rank_tools",
]

logger = get_logger(name=__name__)

CategoryRanking = Literal["priority", "alphabetical"]

_RANKINGS: dict[str, Callable[[Tool], tuple[Any, ...]]] = {
    "priority": lambda tool: (tool.priority, normalize_tool_name(tool.name)),
    "alphabetical": lambda tool: (normalize_tool_name(tool.name),),
}


def normalize_tool_name(name: str) -> str:
    """Return a normalized identifier used for registry lookups."""
    if not isinstance(name, str):
        raise TypeError("Tool name must be a string")
    return name.strip().lower()


def rank_tools(tools: Iterable[Tool], ranking: CategoryRanking = "priority") -> list[Tool]:
    try:
        key = _RANKINGS[ranking]
    except KeyError:
        raise ValueError(f"Unknown category ranking '{ranking}'") from None
    return sorted(tools, key=key)


def load_catalog(path: str | Path) -> list[Tool]:
    """Read tool records from a JSON file holding a list or a ``{"tools": [...]}`` object."""

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    records = raw.get("tools", []) if isinstance(raw, dict) else raw
    if not isinstance(records, list):
        raise ValueError("Tool catalogue must be a list of tool records")
    return [Tool.from_mapping(record) for record in records]


class ToolRegistry:
    """Read-only view over the tool catalogue used during orchestration."""

    async def get(self, name: str) -> Tool | None:
        raise NotImplementedError

    async def fetch_active(self, names: Sequence[str]) -> list[Tool]:
        """Return the active tools among ``names`` ordered by ascending priority."""
        raise NotImplementedError

    async def match_category(
        self,
        category: str,
        *,
        exclude: str | None = None,
        limit: int = 3,
        ranking: CategoryRanking = "priority",
    ) -> list[Tool]:
        raise NotImplementedError

    async def list(self) -> list[Tool]:
        raise NotImplementedError

    async def require(self, name: str) -> Tool:
        tool = await self.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None


class InMemoryToolRegistry(ToolRegistry):
    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[normalize_tool_name(tool.name)] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(normalize_tool_name(name), None)

    def clear(self) -> None:
        self._tools.clear()

    async def get(self, name: str) -> Tool | None:
        return self._tools.get(normalize_tool_name(name))

    async def fetch_active(self, names: Sequence[str]) -> list[Tool]:
        wanted = {normalize_tool_name(name) for name in names}
        matches = [tool for key, tool in self._tools.items() if key in wanted and tool.is_active]
        return rank_tools(matches, "priority")

    async def match_category(
        self,
        category: str,
        *,
        exclude: str | None = None,
        limit: int = 3,
        ranking: CategoryRanking = "priority",
    ) -> list[Tool]:
        excluded = normalize_tool_name(exclude) if exclude else None
        matches = [
            tool
            for key, tool in self._tools.items()
            if tool.is_active and tool.category == category and key != excluded
        ]
        return rank_tools(matches, ranking)[: max(0, limit)]

    async def list(self) -> list[Tool]:
        return rank_tools(self._tools.values(), "alphabetical")


class PostgresToolRegistry(ToolRegistry):
    _COLUMNS = "name, category, endpoint, fallback_tools, priority, is_active, description, result_key"

    _FETCH_ONE = f"SELECT {_COLUMNS} FROM tools WHERE lower(name) = $1"

    _FETCH_ACTIVE = f"""
        SELECT {_COLUMNS}
        FROM tools
        WHERE lower(name) = ANY($1::text[]) AND is_active = TRUE
        ORDER BY priority ASC, name ASC
    """

    _MATCH_CATEGORY = f"""
        SELECT {_COLUMNS}
        FROM tools
        WHERE category = $1 AND is_active = TRUE AND lower(name) <> $2
    """

    _LIST = f"SELECT {_COLUMNS} FROM tools ORDER BY name ASC"

    def __init__(self, pool: Any) -> None:
        self._pool_or_coroutine = pool
        self._pool: Any | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresToolRegistry":
        pool = asyncpg.create_pool(
            dsn=str(settings.postgres.dsn),
            min_size=settings.postgres.pool_min_size,
            max_size=settings.postgres.pool_max_size,
        )
        return cls(pool)

    async def get(self, name: str) -> Tool | None:
        rows = await self._fetch(self._FETCH_ONE, normalize_tool_name(name))
        return Tool.from_mapping(dict(rows[0])) if rows else None

    async def fetch_active(self, names: Sequence[str]) -> list[Tool]:
        normalized = [normalize_tool_name(name) for name in names]
        rows = await self._fetch(self._FETCH_ACTIVE, normalized)
        return [Tool.from_mapping(dict(row)) for row in rows]

    async def match_category(
        self,
        category: str,
        *,
        exclude: str | None = None,
        limit: int = 3,
        ranking: CategoryRanking = "priority",
    ) -> list[Tool]:
        excluded = normalize_tool_name(exclude) if exclude else ""
        rows = await self._fetch(self._MATCH_CATEGORY, category, excluded)
        tools = [Tool.from_mapping(dict(row)) for row in rows]
        return rank_tools(tools, ranking)[: max(0, limit)]

    async def list(self) -> list[Tool]:
        rows = await self._fetch(self._LIST)
        return [Tool.from_mapping(dict(row)) for row in rows]

    async def start(self) -> None:
        await ensure_schema(await self._ensure_pool(), tables=(tools_table,))

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _fetch(self, query: str, *args: Any) -> list[Any]:
        try:
            pool = await self._ensure_pool()
            async with pool.acquire() as connection:
                return list(await connection.fetch(query, *args))
        except (asyncpg.PostgresError, OSError) as exc:
            raise RegistryAccessError(f"Tool registry query failed: {exc}") from exc

    async def _ensure_pool(self) -> Any:
        if self._pool is None:
            pool = self._pool_or_coroutine
            if hasattr(pool, "__await__"):
                pool = await pool
            self._pool = pool
        return self._pool


def build_tool_registry(settings: Settings) -> ToolRegistry:
    if settings.registry.backend == "postgres":
        logger.info("tool_registry_postgres_enabled", environment=settings.environment)
        return PostgresToolRegistry.from_settings(settings)
    if settings.registry.catalog_path:
        tools = load_catalog(settings.registry.catalog_path)
        source = settings.registry.catalog_path
    else:
        tools = [Tool.from_mapping(seed.model_dump()) for seed in settings.registry.seeds]
        source = "settings"
    logger.info("tool_registry_in_memory", tools=len(tools), source=source)
    return InMemoryToolRegistry(tools)
