"""
Extraction/summarization worker logic for a single job.

The job is claimed first (processing -> extracting_text) so a duplicate
trigger finds it already taken and does nothing. Every failure is written
once as `failed` with a detail and ends the run; there is no retry.
"""

import logging
from typing import Optional, Protocol

from autobrief.core.domain.summary_job import JobStatus, SummaryJob, SummaryResult
from autobrief.core.errors import (
    ExtractionError,
    InvalidTransition,
    JobAlreadyClaimed,
    JobNotFound,
    SummarizationError,
)
from autobrief.infrastructure.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

EMPTY_TEXT_DETAIL = "Could not extract content from file."
TIMEOUT_DETAIL = "Processing timed out in worker."


class JobStore(Protocol):
    def get(self, job_id: str) -> Optional[SummaryJob]: ...

    def claim(self, job_id: str) -> SummaryJob: ...

    def transition(
        self,
        job_id: str,
        target: JobStatus,
        *,
        detail: Optional[str] = None,
        result: Optional[SummaryResult] = None,
    ) -> SummaryJob: ...


class Extractor(Protocol):
    def extract(self, data: bytes, media_type: str, filename: str) -> str: ...


class Summarizer(Protocol):
    def summarize(self, text: str) -> SummaryResult: ...


class ProcessingService:
    def __init__(
        self,
        repository: JobStore,
        store: ObjectStore,
        extractor: Extractor,
        summarizer: Summarizer,
    ) -> None:
        self._repo = repository
        self._store = store
        self._extractor = extractor
        self._summarizer = summarizer

    def process(self, job_id: str) -> Optional[SummaryJob]:
        try:
            job = self._repo.claim(job_id)
        except JobNotFound:
            logger.warning("Job not found; nothing to process", extra={"job_id": job_id})
            return None
        except JobAlreadyClaimed:
            logger.info("Job already claimed or finished; skipping", extra={"job_id": job_id})
            return self._repo.get(job_id)

        logger.info(
            "Extracting text",
            extra={"job_id": job_id, "media_type": job.media_type, "source_path": job.source_path},
        )
        try:
            data = self._store.get(job.source_path)
        except OSError as exc:
            logger.exception("Stored file unavailable", extra={"job_id": job_id})
            return self.fail(job_id, f"Could not download the uploaded file: {exc}")

        try:
            text = self._extractor.extract(data, job.media_type, job.source_name)
        except ExtractionError as exc:
            logger.warning("Extraction failed: %s", exc, extra={"job_id": job_id})
            return self.fail(job_id, f"Text extraction failed: {exc}")

        if not text or not text.strip():
            logger.warning("Extraction produced no text", extra={"job_id": job_id})
            return self.fail(job_id, EMPTY_TEXT_DETAIL)

        self._repo.transition(job_id, JobStatus.summarizing)
        logger.info("Summarizing", extra={"job_id": job_id, "chars": len(text)})
        try:
            result = self._summarizer.summarize(text)
        except SummarizationError as exc:
            logger.warning("Summarization failed: %s", exc, extra={"job_id": job_id})
            return self.fail(job_id, f"Summarization failed: {exc}")

        completed = self._repo.transition(job_id, JobStatus.completed, result=result)
        logger.info(
            "Job completed",
            extra={
                "job_id": job_id,
                "key_points": len(result.key_points),
                "action_items": len(result.action_items),
            },
        )
        return completed

    def fail(self, job_id: str, detail: str) -> Optional[SummaryJob]:
        try:
            return self._repo.transition(job_id, JobStatus.failed, detail=detail)
        except InvalidTransition:
            # Already terminal; the first outcome stands.
            logger.warning("Job already terminal; failure not recorded", extra={"job_id": job_id})
            return self._repo.get(job_id)
