from __future__ import annotations

from enum import Enum


class HealingState(str, Enum):
    LOOKUP_PRIMARY = "lookup_primary"
    INVOKE_PRIMARY = "invoke_primary"
    RESOLVE_FALLBACKS = "resolve_fallbacks"
    INVOKE_FALLBACK = "invoke_fallback"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"

    @property
    def terminal(self) -> bool:
        return self in {HealingState.SUCCESS, HealingState.EXHAUSTED, HealingState.NOT_FOUND}


class FallbackStrategy(str, Enum):
    EXPLICIT = "explicit"
    CATEGORY = "category"
    NONE = "none"


__all__ = ["FallbackStrategy", "HealingState"]
