"""Shared constants for Temporal workflows."""

from istory.core.config import settings

DEFAULT_TASK_QUEUE = settings.temporal_task_queue

# Timeouts
NOTIFY_ACTIVITY_TIMEOUT_SECONDS = 60
DB_ACTIVITY_TIMEOUT_SECONDS = 30
ANALYSIS_ACTIVITY_TIMEOUT_SECONDS = 180

NOTIFY_MAX_ATTEMPTS = settings.verification.notify_max_attempts
NOTIFY_INITIAL_RETRY_SECONDS = settings.verification.notify_retry_delay

BACKFILL_DEFAULT_LIMIT = 100
BACKFILL_MIN_CONTENT_LENGTH = settings.backfill_min_content_length
BACKFILL_DELAY_SECONDS = settings.backfill_delay_seconds
