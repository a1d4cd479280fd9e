from prometheus_client import Counter


rollover_runs_total = Counter(
    "medreminder_rollover_runs_total",
    "Total daily rollover passes",
)

plans_rolled_over_total = Counter(
    "medreminder_plans_rolled_over_total",
    "Total plan decrements applied by rollover",
)

plans_completed_total = Counter(
    "medreminder_plans_completed_total",
    "Total plans whose remaining duration reached zero",
)

rollover_failures_total = Counter(
    "medreminder_rollover_failures_total",
    "Total per-plan rollover failures",
)

notifications_scheduled_total = Counter(
    "medreminder_notifications_scheduled_total",
    "Total reminders registered with the notification backend",
)

notifications_failed_total = Counter(
    "medreminder_notifications_failed_total",
    "Total failed schedule or cancel calls",
)

notification_responses_total = Counter(
    "medreminder_notification_responses_total",
    "Total reminder taps received",
)


def inc(counter: Counter, enabled: bool = True) -> None:
    if enabled:
        counter.inc()
