import logging
import time
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, Protocol

from autobrief.config import Settings
from autobrief.core.domain.summary_job import JobStatus, SummaryJob, new_job
from autobrief.core.domain.user import User
from autobrief.core.errors import (
    AnonymousUploadError,
    EnqueueError,
    FileTooLargeError,
    InvalidMediaTypeError,
    MissingFileError,
    QuotaExceededError,
)
from autobrief.infrastructure.storage.object_store import (
    ObjectExistsError,
    ObjectStore,
    build_object_key,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
MAX_KEY_ATTEMPTS = 3


@dataclass
class UploadedFile:
    filename: str
    media_type: str
    stream: BinaryIO


class JobStore(Protocol):
    def create(self, job: SummaryJob) -> SummaryJob: ...

    def count_for_owner(self, owner_id: str) -> int: ...

    def transition(self, job_id: str, target: JobStatus, *, detail=None, result=None) -> SummaryJob: ...


class ProcessingTrigger(Protocol):
    def enqueue(self, job_id: str) -> None: ...


class IntakeService:
    def __init__(
        self,
        repository: JobStore,
        store: ObjectStore,
        trigger: ProcessingTrigger,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repository
        self._store = store
        self._trigger = trigger
        self._settings = settings
        self._clock = clock

    def submit(self, upload: Optional[UploadedFile], owner: Optional[User]) -> SummaryJob:
        if upload is None or not (upload.filename or "").strip():
            raise MissingFileError("No file provided.")

        if owner is None and not self._settings.allow_anonymous_uploads:
            raise AnonymousUploadError("Not authenticated.")
        if owner is not None:
            self._enforce_quota(owner)

        media_type = (upload.media_type or "").split(";", 1)[0].strip().lower()
        if media_type not in self._settings.allowed_media_types:
            raise InvalidMediaTypeError(
                "Invalid file type. Currently supporting: PDF, DOCX, MP3, WAV, MP4."
            )

        data = self._read_within_limit(upload.stream)
        if not data:
            raise MissingFileError("Uploaded file is empty.")

        owner_id = owner.user_id if owner else None
        key = self._store_bytes(owner_id, upload.filename, data, media_type)
        try:
            job = self._repo.create(
                new_job(
                    job_id=str(uuid.uuid4()),
                    owner_id=owner_id,
                    source_name=upload.filename,
                    source_path=key,
                    media_type=media_type,
                )
            )
        except Exception:
            logger.exception("Could not record upload", extra={"key": key})
            self._discard(key)
            raise
        logger.info(
            "Upload accepted",
            extra={"job_id": job.job_id, "owner_id": owner_id, "media_type": media_type, "size_bytes": len(data)},
        )

        try:
            self._trigger.enqueue(job.job_id)
        except Exception as exc:
            # Broker errors vary by transport.
            logger.exception("Could not enqueue job", extra={"job_id": job.job_id})
            self._repo.transition(job.job_id, JobStatus.failed, detail="Could not enqueue processing.")
            raise EnqueueError("Could not start processing.") from exc
        return job

    def _enforce_quota(self, owner: User) -> None:
        limit = self._settings.summary_limit_for(owner.plan)
        if limit is None:
            return
        used = self._repo.count_for_owner(owner.user_id)
        if used >= limit:
            logger.warning(
                "Upload blocked by quota",
                extra={"owner_id": owner.user_id, "plan": owner.plan, "used": used},
            )
            raise QuotaExceededError(
                f"You have reached the maximum number of {limit} summaries for the {owner.plan} plan."
            )

    def _read_within_limit(self, stream: BinaryIO) -> bytes:
        limit = self._settings.max_upload_bytes
        chunks = []
        total = 0
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise FileTooLargeError(
                    f"File too large (max {limit // (1024 * 1024)} MB)."
                )
            chunks.append(chunk)
        return b"".join(chunks)

    def _store_bytes(
        self, owner_id: Optional[str], filename: str, data: bytes, media_type: str
    ) -> str:
        millis = int(self._clock() * 1000)
        for attempt in range(MAX_KEY_ATTEMPTS):
            key = build_object_key(owner_id, filename, millis + attempt)
            try:
                return self._store.put(key, data, media_type)
            except ObjectExistsError:
                logger.info("Object key collision, retrying", extra={"key": key})
        raise ObjectExistsError(f"Could not allocate a storage key for {filename}")

    def _discard(self, key: str) -> None:
        try:
            self._store.delete(key)
        except OSError:
            logger.warning("Could not remove unrecorded upload", extra={"key": key})
