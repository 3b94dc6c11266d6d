from celery import Celery
from kombu import Queue

from app.platform.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - audit.run: full site audits (one browser session per task)

    Audits hold a Chrome session for their whole lifetime, so workers on
    audit.run should prefetch one task at a time.
    """
    celery_app = Celery(
        "a11y_audit",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
        result_expires=24 * 3600,
        task_routes={
            "app.features.audit.workers.tasks.run_audit": {"queue": "audit.run"},
        },
        task_queues=(
            Queue("default"),
            Queue("audit.run"),
        ),
        task_default_queue="default",
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
    )

    celery_app.autodiscover_tasks(["app.features.audit.workers"])

    return celery_app


celery_app = create_celery_app()
