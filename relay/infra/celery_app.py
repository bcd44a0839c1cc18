"""Celery application: Redis broker, queue-drain beat schedule, DB init per worker."""

from __future__ import annotations

from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown

from relay.config import get_settings
from relay.db import db_manager

settings = get_settings()

celery_app = Celery(
    "meta_relay",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["relay.tasks.drain_queue_task"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "drain-webhook-queue": {
            "task": "relay.tasks.drain_queue_task.drain_queue_task",
            "schedule": settings.queue_poll_interval_seconds,
        },
    },
)


@worker_process_init.connect
def _init_worker_db(**_kwargs) -> None:
    db_manager.init()


@worker_process_shutdown.connect
def _dispose_worker_db(**_kwargs) -> None:
    db_manager.dispose()
