from types import SimpleNamespace

import httpx
import openai
import pytest

from autobrief.application.chat_service import INTERRUPTED_DETAIL, ChatService
from autobrief.core.errors import InvalidChatRequest
from autobrief.infrastructure.llm.openai_client import OpenAIClient

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class ScriptedChatModel:
    def __init__(self, chunks=(), error_after=None):
        self.chunks = list(chunks)
        self.error_after = error_after
        self.requests = []

    def stream_chat(self, messages):
        self.requests.append(messages)
        return self._stream()

    def _stream(self):
        for index, chunk in enumerate(self.chunks):
            if self.error_after is not None and index == self.error_after:
                raise openai.APIConnectionError(request=REQUEST)
            yield chunk


def _events(service, messages):
    return [(event.type, event.data) for event in service.open(messages)]


def test_chunks_are_streamed_then_done():
    model = ScriptedChatModel(["Hel", "lo"])
    service = ChatService(model)

    events = _events(service, [{"role": "user", "content": "hi"}])

    assert events == [("chunk", "Hel"), ("chunk", "lo"), ("done", None)]
    assert model.requests == [[{"role": "user", "content": "hi"}]]


@pytest.mark.parametrize("messages", [None, []])
def test_missing_messages_are_rejected_before_the_model(messages):
    model = ScriptedChatModel(["x"])

    with pytest.raises(InvalidChatRequest, match="Messages are required"):
        ChatService(model).open(messages)
    assert model.requests == []


def test_unknown_role_is_rejected():
    with pytest.raises(InvalidChatRequest, match="Unsupported message role"):
        ChatService(ScriptedChatModel()).open([{"role": "tool", "content": "x"}])


def test_broken_stream_ends_with_error_event():
    service = ChatService(ScriptedChatModel(["a", "b", "c"], error_after=1))

    events = _events(service, [{"role": "user", "content": "hi"}])

    assert events == [("chunk", "a"), ("error", INTERRUPTED_DETAIL)]


def _chunk(content):
    delta = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


def test_openai_client_streams_text_deltas():
    captured = {}

    def create(**kwargs):
        captured.update(kwargs)
        return iter([_chunk("Hi"), SimpleNamespace(choices=[]), _chunk(None), _chunk(" there")])

    sdk = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client = OpenAIClient(sdk, model="gpt-4o")

    chunks = client.stream_chat([{"role": "user", "content": "hello"}])

    assert captured["stream"] is True
    assert captured["messages"] == [{"role": "user", "content": "hello"}]
    assert list(chunks) == ["Hi", " there"]


def test_openai_client_opens_the_stream_eagerly():
    def create(**kwargs):
        raise openai.APIConnectionError(request=REQUEST)

    sdk = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    with pytest.raises(openai.APIConnectionError):
        OpenAIClient(sdk).stream_chat([{"role": "user", "content": "hello"}])
