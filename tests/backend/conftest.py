import asyncio
from typing import Dict, List, Optional

import pytest

from autobrief.config import Settings
from autobrief.core.domain.summary_job import (
    JobStatus,
    SummaryJob,
    SummaryResult,
    apply_transition,
)
from autobrief.core.domain.user import User
from autobrief.core.errors import InvalidTransition, JobAlreadyClaimed, JobNotFound
from autobrief.infrastructure.storage.object_store import ObjectExistsError


class InMemoryJobRepository:
    """Same contract as SummaryRepository, backed by a dict."""

    def __init__(self) -> None:
        self.jobs: Dict[str, SummaryJob] = {}
        self.published: List[SummaryJob] = []

    def create(self, job: SummaryJob) -> SummaryJob:
        self.jobs[job.job_id] = job
        self.published.append(job)
        return job

    def get(self, job_id: str) -> Optional[SummaryJob]:
        return self.jobs.get(job_id)

    def count_for_owner(self, owner_id: str) -> int:
        return sum(1 for job in self.jobs.values() if job.owner_id == owner_id)

    def list_for_owner(self, owner_id: str, limit: int = 20) -> List[SummaryJob]:
        owned = [job for job in self.jobs.values() if job.owner_id == owner_id]
        owned.sort(key=lambda job: job.created_at, reverse=True)
        return owned[:limit]

    def transition(self, job_id, target, *, detail=None, result=None) -> SummaryJob:
        current = self.jobs.get(job_id)
        if current is None:
            raise JobNotFound(job_id)
        updated = apply_transition(current, target, detail=detail, result=result)
        self.jobs[job_id] = updated
        self.published.append(updated)
        return updated

    def claim(self, job_id: str) -> SummaryJob:
        try:
            return self.transition(job_id, JobStatus.extracting_text)
        except JobNotFound:
            raise
        except InvalidTransition as exc:
            raise JobAlreadyClaimed(str(exc)) from exc

    def statuses(self) -> List[JobStatus]:
        return [job.status for job in self.published]


class MemoryObjectStore:
    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    def put(self, key: str, data: bytes, content_type: str) -> str:
        if key in self.objects:
            raise ObjectExistsError(key)
        self.objects[key] = data
        self.content_types[key] = content_type
        return key

    def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key]

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)
        self.content_types.pop(key, None)


class RecordingTrigger:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.enqueued: List[str] = []
        self.error = error

    def enqueue(self, job_id: str) -> None:
        if self.error is not None:
            raise self.error
        self.enqueued.append(job_id)


class QueueSubscription:
    def __init__(self) -> None:
        self.queue: "asyncio.Queue[SummaryJob]" = asyncio.Queue()
        self.closed = False

    async def get(self) -> SummaryJob:
        return await self.queue.get()

    async def close(self) -> None:
        self.closed = True


class ScriptedFeed:
    """Subscriptions are pre-filled with `events`; later events can be pushed."""

    def __init__(self, events: Optional[List[SummaryJob]] = None) -> None:
        self.events = list(events or [])
        self.subscriptions: List[QueueSubscription] = []
        self.subscribed_ids: List[str] = []

    async def subscribe(self, job_id: str) -> QueueSubscription:
        subscription = QueueSubscription()
        for event in self.events:
            subscription.queue.put_nowait(event)
        self.subscriptions.append(subscription)
        self.subscribed_ids.append(job_id)
        return subscription


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=None,
        redis_url="redis://localhost:6379/15",
        storage_root=str(tmp_path / "objects"),
        max_upload_bytes=1024,
        payment_recipient_address="Recipient1111111111111111111111111111111111",
    )


@pytest.fixture
def repo() -> InMemoryJobRepository:
    return InMemoryJobRepository()


@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def trigger() -> RecordingTrigger:
    return RecordingTrigger()


@pytest.fixture
def failing_trigger() -> RecordingTrigger:
    return RecordingTrigger(error=ConnectionError("broker down"))


@pytest.fixture
def scripted_feed():
    return ScriptedFeed


@pytest.fixture
def free_user() -> User:
    return User(user_id="u1", email="ana@example.com", password_hash="x", full_name="Ana", plan="free")


@pytest.fixture
def pro_user() -> User:
    return User(user_id="u2", email="pro@example.com", password_hash="x", full_name=None, plan="professional")


@pytest.fixture
def completed_result() -> SummaryResult:
    return SummaryResult(
        summary="Quarterly numbers are up.",
        key_points=["Revenue grew", "Costs flat"],
        action_items=["Send report"],
    )
