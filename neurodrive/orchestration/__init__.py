"""
Orchestration Package

- Healing orchestrator (primary attempt, sequential fallbacks)
- Fallback resolution (explicit fallback lists, category search)
- Trace reconstruction from War Room entries
"""

from .enums import FallbackStrategy, HealingState
from .healing import HealingOrchestrator, HealingRun
from .resolver import FallbackPlan, FallbackResolver
from .trace import TraceReport, healing_active, split_requests, validate_trace

__all__ = [
    "FallbackPlan",
    "FallbackResolver",
    "FallbackStrategy",
    "HealingOrchestrator",
    "HealingRun",
    "HealingState",
    "TraceReport",
    "healing_active",
    "split_requests",
    "validate_trace",
]
