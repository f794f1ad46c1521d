from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

TOOL_INVOCATIONS_TOTAL = Counter(
    "neurodrive_tool_invocations_total",
    "Tool endpoint invocations grouped by outcome",
    labelnames=("tool", "outcome"),
)

TOOL_INVOCATION_LATENCY_SECONDS = Histogram(
    "neurodrive_tool_invocation_latency_seconds",
    "Latency of individual tool endpoint invocations",
    labelnames=("tool",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 20, 30, 60, float("inf")),
)

HEALING_RUNS_TOTAL = Counter(
    "neurodrive_healing_runs_total",
    "Orchestration requests grouped by terminal outcome",
    labelnames=("outcome",),
)

HEALING_PATH_LENGTH = Histogram(
    "neurodrive_healing_path_length",
    "Number of tools attempted per orchestration request",
    buckets=(1, 2, 3, 4, 5, 8),
)

HEALING_ACTIVE_GAUGE = Gauge(
    "neurodrive_healing_requests_active",
    "Orchestration requests currently in flight",
)

FALLBACK_RESOLUTIONS_TOTAL = Counter(
    "neurodrive_fallback_resolutions_total",
    "Fallback resolutions grouped by the strategy that produced candidates",
    labelnames=("strategy",),
)

AUDIT_WRITE_FAILURES_TOTAL = Counter(
    "neurodrive_audit_write_failures_total",
    "System log writes that failed and were swallowed",
    labelnames=("type",),
)


def observe_tool_invocation(*, tool: str, outcome: str, latency: float) -> None:
    TOOL_INVOCATIONS_TOTAL.labels(tool=tool, outcome=outcome).inc()
    TOOL_INVOCATION_LATENCY_SECONDS.labels(tool=tool).observe(max(0.0, latency))


def mark_healing_started() -> None:
    HEALING_ACTIVE_GAUGE.inc()


def mark_healing_completed(*, outcome: str, attempts: int) -> None:
    HEALING_ACTIVE_GAUGE.dec()
    HEALING_RUNS_TOTAL.labels(outcome=outcome).inc()
    if attempts:
        HEALING_PATH_LENGTH.observe(attempts)


def record_fallback_resolution(*, strategy: str) -> None:
    FALLBACK_RESOLUTIONS_TOTAL.labels(strategy=strategy).inc()


def increment_audit_write_failure(*, entry_type: str) -> None:
    AUDIT_WRITE_FAILURES_TOTAL.labels(type=entry_type).inc()
