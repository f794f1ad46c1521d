"""War Room system log: entries, sinks and live subscriptions."""

from .broadcaster import LogBroadcaster, LogSubscription
from .models import LogDraft, LogEntry, LogType
from .recorder import WarRoomRecorder
from .sink import AuditLogSink, InMemoryAuditLogSink, PostgresAuditLogSink, build_audit_sink

__all__ = [
    "AuditLogSink",
    "InMemoryAuditLogSink",
    "LogBroadcaster",
    "LogDraft",
    "LogEntry",
    "LogSubscription",
    "LogType",
    "PostgresAuditLogSink",
    "WarRoomRecorder",
    "build_audit_sink",
]
