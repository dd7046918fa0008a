"""
Prometheus metrics for the odds edge service.

Metrics exposed:
- Odds feed request outcomes and quota gauges
- Collection stage durations and per-sport outcomes
- Collection run outcomes (completed / failed / skipped)
- Featured pick generation
- Scheduler status
"""
from prometheus_client import Counter, Gauge, Histogram

# Odds feed
odds_api_requests_success_total = Counter(
    "odds_api_requests_success_total",
    "Total successful Odds API requests"
)

odds_api_requests_failure_total = Counter(
    "odds_api_requests_failure_total",
    "Total failed Odds API requests",
    ["error_type"]
)

odds_api_quota_remaining = Gauge(
    "odds_api_quota_remaining",
    "Remaining Odds API requests for current billing period"
)

odds_api_quota_used = Gauge(
    "odds_api_quota_used",
    "Used Odds API requests in current billing period"
)

odds_api_quota_percentage = Gauge(
    "odds_api_quota_percentage",
    "Percentage of Odds API quota used"
)

# Collection pipeline
pipeline_stage_duration_seconds = Histogram(
    "pipeline_stage_duration_seconds",
    "Duration of a collection stage per sport",
    ["sport", "step"],
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300)
)

pipeline_sport_outcomes_total = Counter(
    "pipeline_sport_outcomes_total",
    "Per-sport collection outcomes",
    ["sport", "outcome"]
)

pipeline_entities_upserted_total = Counter(
    "pipeline_entities_upserted_total",
    "Entities written by collectors",
    ["sport", "entity"]
)

collection_runs_total = Counter(
    "collection_runs_total",
    "Collection runs by terminal status",
    ["status"]
)

featured_picks_generated = Gauge(
    "featured_picks_generated",
    "Number of featured picks in the most recent regeneration"
)

# Scheduler
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the collection scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def update_scheduler_metrics():
    """Refresh scheduler gauges from the global scheduler instance."""
    from oddsedge.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        scheduler_running.set(1)
        if scheduler.scheduler:
            scheduler_jobs_total.set(len(scheduler.scheduler.get_jobs()))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)


def update_odds_api_quota(remaining: int, used: int, monthly_quota: int = 20000):
    """
    Update Odds API quota metrics.

    Args:
        remaining: Remaining requests
        used: Used requests
        monthly_quota: Requests included in the billing period
    """
    odds_api_quota_remaining.set(remaining)
    odds_api_quota_used.set(used)

    if used > 0 and monthly_quota > 0:
        odds_api_quota_percentage.set((used / monthly_quota) * 100)
    else:
        odds_api_quota_percentage.set(0)


def record_odds_api_request_success():
    odds_api_requests_success_total.inc()


def record_odds_api_request_failure(error_type: str = "unknown"):
    odds_api_requests_failure_total.labels(error_type=error_type).inc()


def observe_stage(sport: str, step: str, seconds: float):
    pipeline_stage_duration_seconds.labels(sport=sport, step=step).observe(seconds)


def record_sport_outcome(sport: str, outcome: str):
    pipeline_sport_outcomes_total.labels(sport=sport, outcome=outcome).inc()


def record_entities(sport: str, entity: str, count: int):
    if count:
        pipeline_entities_upserted_total.labels(sport=sport, entity=entity).inc(count)


def record_run(status: str):
    collection_runs_total.labels(status=status).inc()
