import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from autobrief.application.intake_service import UploadedFile
from autobrief.application.result_observer import status_message
from autobrief.container import ServiceContainer
from autobrief.core.domain.user import User
from autobrief.core.errors import IntakeError
from autobrief.interfaces.api.dependencies import (
    enforce_rate_limit,
    error_response,
    get_container,
    get_optional_user,
)
from autobrief.interfaces.api.schemas import ErrorResponse, UploadResponse

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ERROR_RESPONSES,
)
def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    current_user: Optional[User] = Depends(get_optional_user),
    container: ServiceContainer = Depends(get_container),
):
    enforce_rate_limit(request, bucket="upload", limit=20, window_seconds=60)
    upload = None
    if file is not None:
        upload = UploadedFile(
            filename=file.filename or "",
            media_type=file.content_type or "",
            stream=file.file,
        )

    try:
        job = container.intake.submit(upload, current_user)
    except IntakeError as exc:
        logger.info("Upload rejected", extra={"code": exc.code, "detail": str(exc)})
        return error_response(exc.http_status, exc.code, str(exc))
    except Exception:  # pragma: no cover - runtime protection
        logger.exception("Upload failed")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Could not process the upload."
        )

    return UploadResponse(id=job.job_id, status=job.status, message=status_message(job.status))
