from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(slots=True, frozen=True)
class Tool:
    name: str
    category: str
    endpoint: str
    fallback_tools: tuple[str, ...] = ()
    priority: int = 100
    is_active: bool = True
    description: str = ""
    result_key: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Tool":
        """Build a tool from a registry row or catalogue record."""

        fallbacks = payload.get("fallback_tools") or ()
        if isinstance(fallbacks, str):
            fallbacks = [segment.strip() for segment in fallbacks.split(",") if segment.strip()]
        return cls(
            name=str(payload["name"]),
            category=str(payload.get("category") or ""),
            endpoint=str(payload.get("endpoint") or ""),
            fallback_tools=tuple(str(item) for item in fallbacks if item),
            priority=int(payload.get("priority", 100) or 0),
            is_active=bool(payload.get("is_active", True)),
            description=str(payload.get("description") or ""),
            result_key=payload.get("result_key") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "endpoint": self.endpoint,
            "fallback_tools": list(self.fallback_tools),
            "priority": self.priority,
            "is_active": self.is_active,
            "description": self.description,
            "result_key": self.result_key,
        }

    def as_candidate(self) -> "ToolCandidate":
        return ToolCandidate(name=self.name, endpoint=self.endpoint, result_key=self.result_key)


@dataclass(slots=True, frozen=True)
class ToolCandidate:
    """A replacement tool proposed by the fallback resolver."""

    name: str
    endpoint: str
    result_key: str | None = None


@dataclass(slots=True)
class InvocationOutcome:
    tool: str
    success: bool
    data: Any = None
    error: str | None = None
    status_code: int | None = None
    latency: float = 0.0
