"""
Prometheus metrics for the reconciliation worker.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Providers ───────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "xi_provider_requests_total",
    "Total provider HTTP requests",
    ["provider", "status"],
)
PROVIDER_OUTCOMES = Counter(
    "xi_provider_outcomes_total",
    "Adapter operation outcomes",
    ["provider", "operation", "outcome"],
)
PROVIDER_LATENCY = Histogram(
    "xi_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
CREDENTIAL_TIER_BLOCKED = Gauge(
    "xi_credential_tier_blocked",
    "1 while a credential tier is cooling down after quota exhaustion",
    ["provider", "priority"],
)
CREDENTIAL_BLOCKS = Counter(
    "xi_credential_blocks_total",
    "Quota exhaustion events that blocked a tier",
    ["provider", "priority"],
)
UNMATCHED_PLAYER_NAMES = Counter(
    "xi_unmatched_player_names_total",
    "Provider player names that did not resolve to a roster player",
    ["provider"],
)

# ── Playing XI ──────────────────────────────────────────────────────────
PLAYING_XI_RESOLUTIONS = Counter(
    "xi_playing_xi_resolutions_total",
    "Playing XI resolution attempts by winning source",
    ["source", "result"],
)
LINEUP_CORROBORATIONS = Counter(
    "xi_lineup_corroborations_total",
    "Secondary-provider lineup corroboration results",
    ["result"],
)

# ── Points ──────────────────────────────────────────────────────────────
PLAYER_POINT_WRITES = Counter(
    "xi_player_point_writes_total",
    "Player point values written (only when changed)",
)
TEAM_TOTAL_WRITES = Counter(
    "xi_team_total_writes_total",
    "User team totals written (only when changed)",
)
ORPHANED_TEAM_PLAYERS = Counter(
    "xi_orphaned_team_players_total",
    "Team player ids that no longer resolve to a player row",
)
STALE_SCORECARDS = Counter(
    "xi_stale_scorecards_skipped_total",
    "Scorecards skipped because they covered less play than the last applied one",
    ["provider"],
)

# ── Scheduler ───────────────────────────────────────────────────────────
SCHEDULER_TICKS = Counter(
    "xi_scheduler_ticks_total",
    "Scheduler loop ticks",
    ["loop"],
)
SCHEDULER_JOB_SECONDS = Histogram(
    "xi_scheduler_job_seconds",
    "Duration of one per-match job",
    ["loop"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
SCHEDULER_JOB_FAILURES = Counter(
    "xi_scheduler_job_failures_total",
    "Per-match jobs that raised",
    ["loop"],
)
ELIGIBLE_MATCHES = Gauge(
    "xi_eligible_matches",
    "Matches due on the last tick of each loop",
    ["loop"],
)

# ── Info ────────────────────────────────────────────────────────────────
SERVICE_INFO = Info("xi_service", "Service build information")


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
