"""Rebuild healing state machine runs from War Room entries.

A single request writes one of these shapes, in order::

    error                                   (tool not found)
    info, success                           (primary succeeded)
    info, healing, (healing+, error)*, healing+, success
    info, healing, (healing+, error)*, error

where ``healing+`` is a fallback attempt (``backup_tool`` set) and the bare
``healing`` is the primary failure notice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from neurodrive.audit.models import LogEntry, LogType

from .enums import HealingState

__all__ = ["TraceReport", "healing_active", "split_requests", "validate_trace"]


@dataclass(slots=True)
class TraceReport:
    valid: bool
    states: list[HealingState] = field(default_factory=list)
    problem: str | None = None

    @property
    def terminal(self) -> HealingState | None:
        return self.states[-1] if self.states and self.states[-1].terminal else None


def _step(state: HealingState, entry: LogEntry) -> HealingState | None:
    is_attempt = entry.backup_tool is not None
    if state is HealingState.LOOKUP_PRIMARY:
        if entry.type is LogType.ERROR:
            return HealingState.NOT_FOUND
        if entry.type is LogType.INFO:
            return HealingState.INVOKE_PRIMARY
    elif state is HealingState.INVOKE_PRIMARY:
        if entry.type is LogType.SUCCESS:
            return HealingState.SUCCESS
        if entry.type is LogType.HEALING and not is_attempt:
            return HealingState.RESOLVE_FALLBACKS
    elif state is HealingState.RESOLVE_FALLBACKS:
        if entry.type is LogType.HEALING and is_attempt:
            return HealingState.INVOKE_FALLBACK
        if entry.type is LogType.ERROR:
            return HealingState.EXHAUSTED
    elif state is HealingState.INVOKE_FALLBACK:
        if entry.type is LogType.SUCCESS:
            return HealingState.SUCCESS
        if entry.type is LogType.ERROR:
            # failed candidate; the resolver's next candidate (or exhaustion) follows
            return HealingState.RESOLVE_FALLBACKS
    return None


def validate_trace(entries: Sequence[LogEntry]) -> TraceReport:
    """Check that one request's entries, oldest first, form a complete run."""

    state = HealingState.LOOKUP_PRIMARY
    states = [state]
    for index, entry in enumerate(entries):
        if state.terminal:
            return TraceReport(False, states, f"entry {index} ({entry.type.value}) after terminal state {state.value}")
        following = _step(state, entry)
        if following is None:
            return TraceReport(False, states, f"entry {index} ({entry.type.value}) not allowed in state {state.value}")
        state = following
        states.append(state)
    if not state.terminal:
        return TraceReport(False, states, f"trace ended in non-terminal state {state.value}")
    return TraceReport(True, states)


def split_requests(entries: Iterable[LogEntry]) -> list[list[LogEntry]]:
    """Split a session's entries, oldest first, into per-request runs.

    A run starts at every ``info`` entry and at a ``tool not found`` error that does
    not belong to a run in progress.
    """

    runs: list[list[LogEntry]] = []
    current: list[LogEntry] = []
    state = HealingState.LOOKUP_PRIMARY
    for entry in entries:
        starts_run = entry.type is LogType.INFO or (
            entry.type is LogType.ERROR and (not current or state.terminal)
        )
        if starts_run and current:
            runs.append(current)
            current = []
            state = HealingState.LOOKUP_PRIMARY
        current.append(entry)
        following = _step(state, entry)
        state = following if following is not None else state
    if current:
        runs.append(current)
    return runs


def healing_active(entries: Sequence[LogEntry]) -> bool:
    """War Room indicator: the newest entry (first of a newest-first list) is a healing event."""

    return bool(entries) and entries[0].type is LogType.HEALING
