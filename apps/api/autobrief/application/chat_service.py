"""
Streaming chat: the caller's conversation goes to the model unchanged and
text deltas come back as they arrive.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Protocol

import openai

from autobrief.core.errors import InvalidChatRequest

logger = logging.getLogger(__name__)

CHAT_ROLES = ("system", "user", "assistant")
INTERRUPTED_DETAIL = "The chat stream was interrupted."


class ChatModel(Protocol):
    def stream_chat(self, messages: List[Dict[str, str]]) -> Iterator[str]: ...


@dataclass(frozen=True)
class ChatEvent:
    type: str
    data: Optional[str] = None


def _conversation(messages: Optional[List[Dict[str, str]]]) -> List[Dict[str, str]]:
    if not messages:
        raise InvalidChatRequest("Messages are required.")
    conversation = []
    for message in messages:
        role = message.get("role")
        if role not in CHAT_ROLES:
            raise InvalidChatRequest(f"Unsupported message role: {role}")
        conversation.append({"role": role, "content": message.get("content") or ""})
    return conversation


class ChatService:
    def __init__(self, llm: ChatModel) -> None:
        self._llm = llm

    def open(self, messages: Optional[List[Dict[str, str]]]) -> Iterator[ChatEvent]:
        """
        Validate the conversation and start the model stream.

        Failures opening the stream propagate to the caller. A failure after
        that ends the event stream with one `error` event instead of `done`.
        """
        conversation = _conversation(messages)
        chunks = self._llm.stream_chat(conversation)
        logger.info("Chat stream opened", extra={"messages": len(conversation)})
        return self._events(chunks)

    def _events(self, chunks: Iterator[str]) -> Iterator[ChatEvent]:
        sent = 0
        try:
            for chunk in chunks:
                sent += 1
                yield ChatEvent(type="chunk", data=chunk)
        except openai.OpenAIError:
            logger.exception("Chat stream interrupted", extra={"chunks": sent})
            yield ChatEvent(type="error", data=INTERRUPTED_DETAIL)
            return
        yield ChatEvent(type="done")
