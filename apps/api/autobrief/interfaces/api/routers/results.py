import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from autobrief.application.result_observer import ObserverView, ResultObserver
from autobrief.container import ServiceContainer
from autobrief.core.domain.user import User
from autobrief.interfaces.api.dependencies import error_response, get_container, get_current_user
from autobrief.interfaces.api.schemas import (
    ErrorResponse,
    ObserverEvent,
    ResultListResponse,
    ResultResponse,
)

router = APIRouter()


async def _ndjson_stream(views: AsyncIterator[ObserverView]) -> AsyncIterator[str]:
    async for view in views:
        event = ObserverEvent(data=view.to_dict())
        yield json.dumps(event.model_dump()) + "\n"


@router.get("/results", response_model=ResultListResponse)
def list_results(
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> ResultListResponse:
    jobs = container.summaries.list_for_owner(current_user.user_id, limit=limit)
    return ResultListResponse(results=[ResultResponse.from_job(job) for job in jobs])


@router.get(
    "/results/{job_id}",
    response_model=ResultResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_result(job_id: str, container: ServiceContainer = Depends(get_container)):
    job = container.summaries.get(job_id)
    if job is None:
        return error_response(status.HTTP_404_NOT_FOUND, "not_found", "Summary not found.")
    return ResultResponse.from_job(job)


@router.get("/results/{job_id}/events")
def stream_result(job_id: str, container: ServiceContainer = Depends(get_container)):
    """
    NDJSON stream of observer views; ends on a terminal, timeout or not_found view.
    """
    observer = ResultObserver(
        job_id,
        fetch=container.summaries.get,
        feed=container.feed,
        timeout_seconds=container.settings.observer_timeout_seconds,
    )
    return StreamingResponse(_ndjson_stream(observer.watch()), media_type="application/x-ndjson")
