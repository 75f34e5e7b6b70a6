import logging

from fastapi import APIRouter, Depends, Request, status

from autobrief.container import ServiceContainer
from autobrief.core.domain.user import User
from autobrief.core.errors import PaymentRejected
from autobrief.interfaces.api.dependencies import (
    enforce_rate_limit,
    error_response,
    get_container,
    get_current_user,
)
from autobrief.interfaces.api.schemas import ErrorResponse, PaymentRequest, PaymentResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/payments/verify",
    response_model=PaymentResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def verify_payment(
    payload: PaymentRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    enforce_rate_limit(request, bucket="payment", limit=10, window_seconds=60)
    try:
        outcome = container.payment.verify(
            current_user, payload.signature, payload.plan, payload.amount
        )
    except PaymentRejected as exc:
        logger.warning(
            "Payment rejected: %s",
            exc,
            extra={"user_id": current_user.user_id, "signature": payload.signature},
        )
        return error_response(status.HTTP_400_BAD_REQUEST, "payment_rejected", str(exc))
    except Exception:  # pragma: no cover - runtime protection
        logger.exception("Payment verification failed", extra={"signature": payload.signature})
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Could not verify the payment."
        )

    return PaymentResponse(
        plan=outcome.plan,
        message=f"Payment verified. Your plan is now {outcome.plan}.",
    )
