"""Prometheus metrics for notification routing and delivery.

Usage:
    from notify_service.features.notifications.metrics import delivery_attempts_total

    delivery_attempts_total.labels(channel="email", outcome="delivered").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Routing / outbox writes
# =============================================================================

outbox_entries_created_total = Counter(
    "notification_outbox_entries_created_total",
    "Outbox entries created by routing",
    labelnames=["event_type", "channel"],
)

outbox_duplicates_skipped_total = Counter(
    "notification_outbox_duplicates_skipped_total",
    "Outbox entries skipped because their idempotency key already existed",
    labelnames=["event_type"],
)

routing_unrouted_total = Counter(
    "notification_routing_unrouted_total",
    "Events routed without a matching routing rule",
    labelnames=["event_type"],
)

# =============================================================================
# Delivery worker
# =============================================================================

delivery_attempts_total = Counter(
    "notification_delivery_attempts_total",
    "Delivery attempts by channel and outcome",
    labelnames=["channel", "outcome"],
)
"""
Labels:
    channel: in-app, email, webhook
    outcome: delivered, failed, error
"""

delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Time spent in the channel adapter per attempt",
    labelnames=["channel"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

delivery_exhausted_total = Counter(
    "notification_delivery_exhausted_total",
    "Entries left in terminal FAILED after their last allowed attempt",
    labelnames=["channel"],
)

outbox_leases_expired_total = Counter(
    "notification_outbox_leases_expired_total",
    "PROCESSING entries released after the processing timeout",
)

outbox_leases_lost_total = Counter(
    "notification_outbox_leases_lost_total",
    "Claimed entries skipped or discarded because the claim was taken over",
    labelnames=["channel"],
)

worker_batch_size = Histogram(
    "notification_worker_batch_size",
    "Entries claimed per worker pass",
    buckets=[0, 1, 5, 10, 25, 50, 100, 250, 500, 1000],
)

__all__ = [
    "delivery_attempts_total",
    "delivery_duration_seconds",
    "delivery_exhausted_total",
    "outbox_duplicates_skipped_total",
    "outbox_entries_created_total",
    "outbox_leases_expired_total",
    "outbox_leases_lost_total",
    "routing_unrouted_total",
    "worker_batch_size",
]
