"""
Job record and the status state machine shared by the worker, the store
and the result observer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from autobrief.core.errors import InvalidTransition

DEFAULT_FAILURE_DETAIL = "Processing failed."


class JobStatus(str, Enum):
    processing = "processing"
    extracting_text = "extracting_text"
    summarizing = "summarizing"
    completed = "completed"
    failed = "failed"


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset(
    {JobStatus.completed, JobStatus.failed}
)

ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.processing: frozenset({JobStatus.extracting_text, JobStatus.failed}),
    JobStatus.extracting_text: frozenset({JobStatus.summarizing, JobStatus.failed}),
    JobStatus.summarizing: frozenset({JobStatus.completed, JobStatus.failed}),
    JobStatus.completed: frozenset(),
    JobStatus.failed: frozenset(),
}

# Position along the happy path; used to drop stale change events.
STATUS_ORDER: Dict[JobStatus, int] = {
    JobStatus.processing: 0,
    JobStatus.extracting_text: 1,
    JobStatus.summarizing: 2,
    JobStatus.completed: 3,
    JobStatus.failed: 3,
}


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def predecessors(target: JobStatus) -> List[JobStatus]:
    """States from which `target` may be entered, in declaration order."""
    return [state for state, nxt in ALLOWED_TRANSITIONS.items() if target in nxt]


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    key_points: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SummaryJob:
    job_id: str
    owner_id: Optional[str]
    source_name: str
    source_path: str
    media_type: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    status_detail: Optional[str] = None
    summary: Optional[str] = None
    key_points: Optional[List[str]] = None
    action_items: Optional[List[str]] = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "owner_id": self.owner_id,
            "source_name": self.source_name,
            "source_path": self.source_path,
            "media_type": self.media_type,
            "status": self.status.value,
            "status_detail": self.status_detail,
            "summary": self.summary,
            "key_points": list(self.key_points) if self.key_points is not None else None,
            "action_items": list(self.action_items) if self.action_items is not None else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "SummaryJob":
        return cls(
            job_id=payload["job_id"],
            owner_id=payload.get("owner_id"),
            source_name=payload["source_name"],
            source_path=payload["source_path"],
            media_type=payload["media_type"],
            status=JobStatus(payload["status"]),
            status_detail=payload.get("status_detail"),
            summary=payload.get("summary"),
            key_points=payload.get("key_points"),
            action_items=payload.get("action_items"),
            created_at=_parse_ts(payload["created_at"]),
            updated_at=_parse_ts(payload["updated_at"]),
        )


def _parse_ts(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job(
    job_id: str,
    owner_id: Optional[str],
    source_name: str,
    source_path: str,
    media_type: str,
    now: Optional[datetime] = None,
) -> SummaryJob:
    created = now or _utcnow()
    return SummaryJob(
        job_id=job_id,
        owner_id=owner_id,
        source_name=source_name,
        source_path=source_path,
        media_type=media_type,
        status=JobStatus.processing,
        created_at=created,
        updated_at=created,
    )


def transition_fields(
    job_id: str,
    target: JobStatus,
    *,
    detail: Optional[str] = None,
    result: Optional[SummaryResult] = None,
) -> dict:
    """
    Field values written when entering `target` (besides status/updated_at).

    Summary fields are only written on `completed`; `failed` always carries
    a non-empty detail.
    """
    if target == JobStatus.failed:
        return {"status_detail": (detail or "").strip() or DEFAULT_FAILURE_DETAIL}
    if target == JobStatus.completed:
        if result is None or not result.summary.strip():
            raise InvalidTransition(f"Job {job_id} cannot complete without a summary.")
        return {
            "summary": result.summary,
            "key_points": list(result.key_points),
            "action_items": list(result.action_items),
        }
    return {}


def apply_transition(
    job: SummaryJob,
    target: JobStatus,
    *,
    detail: Optional[str] = None,
    result: Optional[SummaryResult] = None,
    now: Optional[datetime] = None,
) -> SummaryJob:
    """Return a copy of `job` moved to `target`. Terminal records never change."""
    if not can_transition(job.status, target):
        raise InvalidTransition(
            f"Job {job.job_id} cannot move from {job.status.value} to {target.value}."
        )
    changes = transition_fields(job.job_id, target, detail=detail, result=result)
    return replace(job, status=target, updated_at=now or _utcnow(), **changes)
