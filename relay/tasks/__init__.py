# Import celery app first
from relay.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from relay.infra.logging_config import LoggingConfig
from relay.tasks.drain_queue_task import drain_queue_task

LoggingConfig()

__all__ = ["celery_app", "drain_queue_task"]
