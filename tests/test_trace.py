from __future__ import annotations

from neurodrive.audit.models import LogEntry, LogType
from neurodrive.orchestration.enums import HealingState
from neurodrive.orchestration.trace import healing_active, split_requests, validate_trace


def _entry(entry_type: LogType, message: str = "", *, backup_tool: str | None = None) -> LogEntry:
    return LogEntry(session_id="s-1", type=entry_type, message=message, backup_tool=backup_tool)


INFO = _entry(LogType.INFO, "Executing primary tool: amadeus_flights")
PRIMARY_FAILED = _entry(LogType.HEALING, "Primary tool amadeus_flights failed. Searching for backups...")
ATTEMPT = _entry(LogType.HEALING, "Attempting fallback: mock_flights", backup_tool="mock_flights")
ATTEMPT_FAILED = _entry(LogType.ERROR, "Fallback mock_flights also failed")
SUCCESS = _entry(LogType.SUCCESS, "Self-healed! mock_flights succeeded after amadeus_flights failed")
EXHAUSTED = _entry(LogType.ERROR, "All tools exhausted. Could not complete task.")
NOT_FOUND = _entry(LogType.ERROR, "Tool not found: ghost")


def test_valid_shapes_reach_terminal_states() -> None:
    assert validate_trace([NOT_FOUND]).terminal is HealingState.NOT_FOUND
    assert validate_trace([INFO, SUCCESS]).terminal is HealingState.SUCCESS
    assert validate_trace([INFO, PRIMARY_FAILED, ATTEMPT, SUCCESS]).terminal is HealingState.SUCCESS
    assert validate_trace([INFO, PRIMARY_FAILED, EXHAUSTED]).terminal is HealingState.EXHAUSTED

    report = validate_trace([INFO, PRIMARY_FAILED, ATTEMPT, ATTEMPT_FAILED, ATTEMPT, ATTEMPT_FAILED, EXHAUSTED])
    assert report.valid
    assert report.states == [
        HealingState.LOOKUP_PRIMARY,
        HealingState.INVOKE_PRIMARY,
        HealingState.RESOLVE_FALLBACKS,
        HealingState.INVOKE_FALLBACK,
        HealingState.RESOLVE_FALLBACKS,
        HealingState.INVOKE_FALLBACK,
        HealingState.RESOLVE_FALLBACKS,
        HealingState.EXHAUSTED,
    ]


def test_invalid_shapes_are_reported() -> None:
    skipped_info = validate_trace([PRIMARY_FAILED, SUCCESS])
    after_terminal = validate_trace([INFO, SUCCESS, SUCCESS])
    unfinished = validate_trace([INFO, PRIMARY_FAILED, ATTEMPT])

    assert not skipped_info.valid and "not allowed" in (skipped_info.problem or "")
    assert not after_terminal.valid and "after terminal" in (after_terminal.problem or "")
    assert not unfinished.valid and unfinished.terminal is None
    assert not validate_trace([]).valid


def test_split_requests_groups_consecutive_runs() -> None:
    entries = [INFO, SUCCESS, NOT_FOUND, INFO, PRIMARY_FAILED, ATTEMPT, ATTEMPT_FAILED, EXHAUSTED]

    runs = split_requests(entries)

    assert [len(run) for run in runs] == [2, 1, 5]
    assert all(validate_trace(run).valid for run in runs)


def test_healing_active_reads_newest_entry() -> None:
    assert healing_active([ATTEMPT, INFO]) is True
    assert healing_active([SUCCESS, ATTEMPT]) is False
    assert healing_active([]) is False
