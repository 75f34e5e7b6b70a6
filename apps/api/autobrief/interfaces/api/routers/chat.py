import json
import logging
from typing import Iterator

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse

from autobrief.application.chat_service import ChatEvent
from autobrief.container import ServiceContainer
from autobrief.core.errors import InvalidChatRequest
from autobrief.interfaces.api.dependencies import enforce_rate_limit, error_response, get_container
from autobrief.interfaces.api.schemas import ChatRequest, ChatStreamEvent, ErrorResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def _ndjson_stream(events: Iterator[ChatEvent]) -> Iterator[str]:
    for event in events:
        payload = ChatStreamEvent(type=event.type, data=event.data)
        yield json.dumps(payload.model_dump()) + "\n"


@router.post(
    "/chat",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def chat(
    payload: ChatRequest,
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    """
    NDJSON stream of `chunk` events followed by `done`, or `error` if the model
    stream breaks part way.
    """
    enforce_rate_limit(request, bucket="chat", limit=30, window_seconds=60)
    messages = None
    if payload.messages is not None:
        messages = [message.model_dump() for message in payload.messages]
    try:
        events = container.chat.open(messages)
    except InvalidChatRequest as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, "no_messages", str(exc))
    except Exception:
        logger.exception("Chat request failed")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Chat is unavailable."
        )
    return StreamingResponse(_ndjson_stream(events), media_type="application/x-ndjson")
