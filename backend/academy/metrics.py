from __future__ import annotations

from prometheus_client import Counter, Gauge

video_batch_items_total = Counter(
    "video_batch_items_total",
    "Video batch items processed, labelled by outcome.",
    ["status"],
)
video_batches_finished_total = Counter(
    "video_batches_finished_total",
    "Video batch jobs that reached a terminal status.",
    ["status"],
)
video_batches_running = Gauge(
    "video_batches_running",
    "Video batch jobs currently being processed in this process.",
)
stripe_webhook_events_total = Counter(
    "stripe_webhook_events_total",
    "Stripe webhook events received, labelled by event type.",
    ["event_type"],
)
email_program_runs_enqueued_total = Counter(
    "email_program_runs_enqueued_total",
    "Email program runs queued by the scheduler endpoint.",
)
audience_sync_users_total = Counter(
    "audience_sync_users_total",
    "Hashed identifiers uploaded to advertising audiences.",
)
audience_sync_failures_total = Counter(
    "audience_sync_failures_total",
    "Audience sync attempts that ended in error.",
)
