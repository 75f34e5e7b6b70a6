import os

from celery import Celery

BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://redis:6379/0")
RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", BROKER_URL)
WORKER_CONCURRENCY = int(os.environ.get("CELERY_CONCURRENCY", "2"))
TASK_TIME_LIMIT = int(os.environ.get("CELERY_TASK_TIME_LIMIT", "600"))
TASK_SOFT_TIME_LIMIT = int(os.environ.get("CELERY_TASK_SOFT_TIME_LIMIT", "570"))

PROCESS_SUMMARY_TASK = "autobrief.worker.process_summary"

celery_app = Celery(
    "autobrief",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
)

celery_app.conf.update(
    task_routes={PROCESS_SUMMARY_TASK: {"queue": "summaries"}},
    worker_concurrency=WORKER_CONCURRENCY,
    # Transcription and summarization are long; don't hoard jobs per worker.
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    task_time_limit=TASK_TIME_LIMIT,
    task_soft_time_limit=TASK_SOFT_TIME_LIMIT,
)

celery_app.autodiscover_tasks(["autobrief.interfaces.worker"])


class CeleryTrigger:
    """Queues the processing task by name so the API never imports worker code."""

    def __init__(self, app: Celery = celery_app) -> None:
        self._app = app

    def enqueue(self, job_id: str) -> None:
        self._app.send_task(PROCESS_SUMMARY_TASK, args=[job_id])
