# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers, including the beat schedule that
# fires the pattern jobs. All times are UTC.
# =============================================================================

from celery.schedules import crontab


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete so a crashed worker's job reruns;
    # every job write is insert-if-absent, so a rerun is harmless
    task_acks_late = True
    worker_prefetch_multiplier = 1

    result_expires = 24 * 3600

    # A job walks every tenant; give it room
    task_time_limit = 1800
    task_soft_time_limit = 1740

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_routes = {
        "workers.tasks.run_daily_job": {"queue": "pattern_jobs"},
        "workers.tasks.run_weekly_job": {"queue": "pattern_jobs"},
        "workers.tasks.run_monthly_job": {"queue": "pattern_jobs"},
        "workers.tasks.run_archive_job": {"queue": "pattern_jobs"},
    }
    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Schedule
    # -------------------------------------------------------------------------

    beat_schedule = {
        "daily-pattern-job": {
            "task": "workers.tasks.run_daily_job",
            "schedule": crontab(hour=2, minute=0),
        },
        "weekly-pattern-job": {
            "task": "workers.tasks.run_weekly_job",
            "schedule": crontab(hour=0, minute=30, day_of_week="mon"),
        },
        "monthly-pattern-job": {
            "task": "workers.tasks.run_monthly_job",
            "schedule": crontab(hour=1, minute=0, day_of_month=1),
        },
        "alert-archive-job": {
            "task": "workers.tasks.run_archive_job",
            "schedule": crontab(hour=3, minute=0),
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = "UTC"
    enable_utc = True
