"""Prometheus metric definitions for notification reconciliation."""

from prometheus_client import Counter, Histogram


notifications_processed_total = Counter(
    "notifications_processed_total",
    "Processed provider notifications by outcome",
    ["service", "outcome"],
)
payment_update_conflicts_total = Counter(
    "payment_update_conflicts_total",
    "Version conflicts returned by the payment store",
    ["service"],
)
payment_update_retries_exhausted_total = Counter(
    "payment_update_retries_exhausted_total",
    "Reconciliations that gave up after the retry budget",
    ["service"],
)
interface_interactions_skipped_total = Counter(
    "interface_interactions_skipped_total",
    "Notifications already recorded as an interface interaction",
    ["service"],
)
reconcile_latency_seconds = Histogram(
    "reconcile_latency_seconds",
    "Seconds spent reconciling one notification against its payment",
    ["service"],
)
