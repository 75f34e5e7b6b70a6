"""
Client-side view of one job: initial read, change subscription and a local
liveness timeout.

The subscription and the timeout timer race; whichever fires first decides
the final view. Both are cancelled together whenever `watch()` ends,
including when the consumer stops iterating early.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Optional

from autobrief.core.domain.summary_job import STATUS_ORDER, JobStatus, SummaryJob
from autobrief.infrastructure.messaging.change_feed import ChangeFeed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0

TIMEOUT_MESSAGE = "Processing is taking longer than expected. Please check back later."
NOT_FOUND_MESSAGE = "Summary not found."

STATUS_MESSAGES = {
    JobStatus.processing: "Your document is in the queue for processing.",
    JobStatus.extracting_text: "Extracting text from the document...",
    JobStatus.summarizing: "The AI is generating the summary. This may take a moment...",
    JobStatus.completed: "Summary complete!",
}


class ObserverState(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    timeout = "timeout"
    not_found = "not_found"


@dataclass(frozen=True)
class ObserverView:
    state: ObserverState
    message: str
    job: Optional[SummaryJob] = None

    @property
    def is_final(self) -> bool:
        return self.state != ObserverState.pending

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "message": self.message,
            "status": self.job.status.value if self.job else None,
            "job": self.job.to_dict() if self.job else None,
        }


def status_message(status: JobStatus, detail: Optional[str] = None) -> str:
    if status == JobStatus.failed:
        return f"Processing failed: {detail or 'An unknown error occurred.'}"
    return STATUS_MESSAGES.get(status, "Processing document...")


def view_for(job: SummaryJob) -> ObserverView:
    if job.status == JobStatus.completed:
        state = ObserverState.completed
    elif job.status == JobStatus.failed:
        state = ObserverState.failed
    else:
        state = ObserverState.pending
    return ObserverView(state=state, message=status_message(job.status, job.status_detail), job=job)


class ResultObserver:
    def __init__(
        self,
        job_id: str,
        fetch: Callable[[str], Optional[SummaryJob]],
        feed: ChangeFeed,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.job_id = job_id
        self._fetch = fetch
        self._feed = feed
        self.timeout_seconds = timeout_seconds

    def _accepts(self, current: SummaryJob, update: SummaryJob) -> bool:
        if update.job_id != self.job_id or current.is_terminal:
            return False
        # Late deliveries of an earlier status are ignored.
        return STATUS_ORDER[update.status] >= STATUS_ORDER[current.status]

    async def watch(self) -> AsyncIterator[ObserverView]:
        loop = asyncio.get_running_loop()
        # Subscribe before the first read so no update can slip in between.
        subscription = await self._feed.subscribe(self.job_id)
        timed_out = asyncio.Event()
        timer = loop.call_later(self.timeout_seconds, timed_out.set)
        timeout_wait: Optional[asyncio.Future] = None
        next_event: Optional[asyncio.Future] = None
        try:
            current = await asyncio.to_thread(self._fetch, self.job_id)
            if current is None:
                yield ObserverView(state=ObserverState.not_found, message=NOT_FOUND_MESSAGE)
                return

            yield view_for(current)
            if current.is_terminal:
                return

            timeout_wait = asyncio.ensure_future(timed_out.wait())
            while True:
                next_event = asyncio.ensure_future(subscription.get())
                done, _ = await asyncio.wait(
                    {next_event, timeout_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                if next_event not in done:
                    logger.info(
                        "Observer timed out",
                        extra={"job_id": self.job_id, "status": current.status.value},
                    )
                    yield ObserverView(state=ObserverState.timeout, message=TIMEOUT_MESSAGE, job=current)
                    return

                update = next_event.result()
                next_event = None
                if not self._accepts(current, update):
                    continue
                current = update
                yield view_for(current)
                if current.is_terminal:
                    return
        finally:
            timer.cancel()
            for pending in (next_event, timeout_wait):
                if pending is not None and not pending.done():
                    pending.cancel()
            await subscription.close()
