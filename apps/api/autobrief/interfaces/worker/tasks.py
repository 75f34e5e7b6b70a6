import logging
from typing import Optional

from celery.exceptions import SoftTimeLimitExceeded
from celery.signals import worker_process_init

from autobrief.application.processing_service import TIMEOUT_DETAIL
from autobrief.config import get_settings
from autobrief.container import ServiceContainer
from autobrief.core.domain.summary_job import JobStatus
from autobrief.core.errors import InvalidTransition, JobNotFound
from autobrief.infrastructure.db import connection as db
from autobrief.infrastructure.messaging.celery_app import PROCESS_SUMMARY_TASK, celery_app
from autobrief.logging_config import configure_logging

logger = logging.getLogger(__name__)

_container: Optional[ServiceContainer] = None


@worker_process_init.connect
def _on_worker_start(**_) -> None:
    configure_logging()


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        settings = get_settings()
        _container = ServiceContainer(settings, db.init_pool(settings.database_url))
    return _container


def _record_failure(container: ServiceContainer, job_id: str, detail: str) -> None:
    try:
        container.summaries.transition(job_id, JobStatus.failed, detail=detail)
    except (InvalidTransition, JobNotFound):
        logger.warning("Job %s already terminal or missing; failure not recorded", job_id)


@celery_app.task(name=PROCESS_SUMMARY_TASK, acks_late=True, max_retries=0)
def process_summary(job_id: str) -> Optional[str]:
    """
    Celery task that extracts and summarizes one uploaded document.
    Returns the final status, or None when the job does not exist.
    """
    logger.info("Starting summary job %s", job_id)
    container = get_container()
    try:
        job = container.processing.process(job_id)
    except SoftTimeLimitExceeded:
        logger.exception("Summary job %s timed out", job_id)
        _record_failure(container, job_id, TIMEOUT_DETAIL)
        raise
    except Exception as exc:
        logger.exception("Summary job %s failed", job_id)
        _record_failure(container, job_id, f"Unexpected processing error: {exc}")
        raise

    if job is None:
        return None
    logger.info("Summary job %s finished with status %s", job_id, job.status.value)
    return job.status.value
