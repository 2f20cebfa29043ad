"""Celery Beat periodic task schedule."""

from celery.schedules import crontab

beat_schedule = {
    "purge-expired-notifications": {
        "task": "purge_expired_notifications",
        "schedule": crontab(minute=0),
        # Skip a missed run rather than stacking it on the next one
        "options": {"expires": 55 * 60},
    },
    "cleanup-webhook-logs": {
        "task": "cleanup_webhook_logs",
        "schedule": crontab(hour=2, minute=30),
        "options": {"expires": 6 * 3600},
    },
}
