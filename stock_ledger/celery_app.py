"""
Celery Application Configuration

Configures Celery for the stock import pipeline with a Redis broker.
Preparation and chunk tasks run on the STOCK_IMPORT_QUEUE queue.
"""

from celery import Celery
from stock_ledger.config import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    STOCK_IMPORT_QUEUE,
)

# Create Celery app
celery_app = Celery(
    "stock_ledger",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["stock_ledger.tasks.stock_imports"],  # Import task modules
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per task
    task_acks_late=True,  # Redeliver tasks whose worker died mid-run
    task_default_queue=STOCK_IMPORT_QUEUE,
    worker_prefetch_multiplier=1,  # Process one task at a time
    worker_max_tasks_per_child=100,  # Restart worker after 100 tasks (prevent memory leaks)
    task_always_eager=CELERY_TASK_ALWAYS_EAGER,  # Run tasks inline (local runs, tests)
)

if __name__ == "__main__":
    celery_app.start()
