"""Celery workers module - imports all task modules for autodiscovery."""

from app.features.audit.workers import tasks  # noqa: F401
