import logging
from typing import List, Optional

from psycopg_pool import ConnectionPool

from autobrief.core.domain.summary_job import (
    JobStatus,
    SummaryJob,
    SummaryResult,
    predecessors,
    transition_fields,
)
from autobrief.core.errors import InvalidTransition, JobAlreadyClaimed, JobNotFound
from autobrief.infrastructure.messaging.change_feed import ChangePublisher

logger = logging.getLogger(__name__)

TABLE_DDL = """
CREATE TABLE IF NOT EXISTS summary_jobs (
    job_id TEXT PRIMARY KEY,
    owner_id TEXT,
    source_name TEXT NOT NULL,
    source_path TEXT NOT NULL,
    media_type TEXT NOT NULL,
    status TEXT NOT NULL,
    status_detail TEXT,
    summary TEXT,
    key_points TEXT[],
    action_items TEXT[],
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_summary_jobs_owner ON summary_jobs(owner_id, created_at DESC);
"""

COLUMNS = (
    "job_id, owner_id, source_name, source_path, media_type, status, status_detail, "
    "summary, key_points, action_items, created_at, updated_at"
)


def _row_to_job(row) -> SummaryJob:
    getter = row.get if hasattr(row, "get") else lambda k: row[k]
    return SummaryJob(
        job_id=getter("job_id"),
        owner_id=getter("owner_id"),
        source_name=getter("source_name"),
        source_path=getter("source_path"),
        media_type=getter("media_type"),
        status=JobStatus(getter("status")),
        status_detail=getter("status_detail"),
        summary=getter("summary"),
        key_points=getter("key_points"),
        action_items=getter("action_items"),
        created_at=getter("created_at"),
        updated_at=getter("updated_at"),
    )


class SummaryRepository:
    """Postgres-backed store for job records; every write is keyed by job_id."""

    def __init__(
        self, pool: ConnectionPool, publisher: Optional[ChangePublisher] = None
    ) -> None:
        self._pool = pool
        self._publisher = publisher

    def ensure_table(self) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(TABLE_DDL)
            conn.commit()

    def create(self, job: SummaryJob) -> SummaryJob:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO summary_jobs (job_id, owner_id, source_name, source_path, media_type, status, created_at, updated_at)
                VALUES (%(job_id)s, %(owner_id)s, %(source_name)s, %(source_path)s, %(media_type)s, %(status)s, %(created_at)s, %(updated_at)s)
                RETURNING {COLUMNS}
                """,
                {
                    "job_id": job.job_id,
                    "owner_id": job.owner_id,
                    "source_name": job.source_name,
                    "source_path": job.source_path,
                    "media_type": job.media_type,
                    "status": job.status.value,
                    "created_at": job.created_at,
                    "updated_at": job.updated_at,
                },
            )
            row = cur.fetchone()
            conn.commit()
        created = _row_to_job(row)
        self._publish(created)
        return created

    def get(self, job_id: str) -> Optional[SummaryJob]:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {COLUMNS} FROM summary_jobs WHERE job_id = %(job_id)s",
                {"job_id": job_id},
            )
            row = cur.fetchone()
        return _row_to_job(row) if row else None

    def count_for_owner(self, owner_id: str) -> int:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                "SELECT count(*) AS total FROM summary_jobs WHERE owner_id = %(owner_id)s",
                {"owner_id": owner_id},
            )
            row = cur.fetchone()
        if not row:
            return 0
        return int(row["total"] if hasattr(row, "get") else row[0])

    def list_for_owner(self, owner_id: str, limit: int = 20) -> List[SummaryJob]:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {COLUMNS} FROM summary_jobs
                WHERE owner_id = %(owner_id)s
                ORDER BY created_at DESC
                LIMIT %(limit)s
                """,
                {"owner_id": owner_id, "limit": limit},
            )
            rows = cur.fetchall()
        return [_row_to_job(row) for row in rows]

    def transition(
        self,
        job_id: str,
        target: JobStatus,
        *,
        detail: Optional[str] = None,
        result: Optional[SummaryResult] = None,
    ) -> SummaryJob:
        """
        Atomically move a job to `target` if its current status allows it.

        The guard lives in the WHERE clause so two writers racing on the same
        job cannot both win the same step.
        """
        fields = transition_fields(job_id, target, detail=detail, result=result)
        set_clauses = ["status = %(status)s", "updated_at = now()"]
        params = {
            "job_id": job_id,
            "status": target.value,
            "allowed_from": [state.value for state in predecessors(target)],
        }
        for key, value in fields.items():
            set_clauses.append(f"{key} = %({key})s")
            params[key] = value

        query = f"""
            UPDATE summary_jobs
            SET {", ".join(set_clauses)}
            WHERE job_id = %(job_id)s AND status = ANY(%(allowed_from)s)
            RETURNING {COLUMNS}
        """
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
            conn.commit()

        if row is None:
            current = self.get(job_id)
            if current is None:
                raise JobNotFound(f"Job {job_id} not found.")
            raise InvalidTransition(
                f"Job {job_id} cannot move from {current.status.value} to {target.value}."
            )

        updated = _row_to_job(row)
        logger.info(
            "Job status changed",
            extra={"job_id": job_id, "status": updated.status.value},
        )
        self._publish(updated)
        return updated

    def claim(self, job_id: str) -> SummaryJob:
        try:
            return self.transition(job_id, JobStatus.extracting_text)
        except JobNotFound:
            raise
        except InvalidTransition as exc:
            raise JobAlreadyClaimed(str(exc)) from exc

    def _publish(self, job: SummaryJob) -> None:
        if self._publisher is not None:
            self._publisher.publish(job)
