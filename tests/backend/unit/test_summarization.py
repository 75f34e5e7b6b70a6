import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from autobrief.application.summary_service import (
    NO_SUMMARY,
    SYSTEM_PROMPT,
    TRUNCATION_NOTE,
    SummaryService,
    build_prompt,
    parse_summary_payload,
    truncate_content,
)
from autobrief.core.errors import SummarizationError
from autobrief.infrastructure.llm.openai_client import OpenAIClient


class CannedCompleter:
    def __init__(self, response="", error=None):
        self.response = response
        self.error = error
        self.prompts = []

    def complete_json(self, system, prompt):
        self.prompts.append((system, prompt))
        if self.error is not None:
            raise self.error
        return self.response


def test_truncate_content_respects_limit():
    assert truncate_content("abc", 5) == ("abc", False)
    assert truncate_content("abcdef", 5) == ("abcde", True)


def test_prompt_mentions_keys_and_note_only_when_truncated():
    plain = build_prompt("hello", truncated=False)
    assert '"keyPoints"' in plain
    assert '"actionItems"' in plain
    assert TRUNCATION_NOTE not in plain
    assert TRUNCATION_NOTE in build_prompt("hello", truncated=True)


def test_long_text_is_truncated_before_the_request():
    llm = CannedCompleter(response=json.dumps({"summary": "ok"}))
    SummaryService(llm, max_chars=10).summarize("x" * 50)

    system, prompt = llm.prompts[0]
    assert system == SYSTEM_PROMPT
    assert "x" * 10 in prompt
    assert "x" * 11 not in prompt
    assert TRUNCATION_NOTE in prompt


def test_missing_keys_get_defaults():
    result = parse_summary_payload("{}")
    assert result.summary == NO_SUMMARY
    assert result.key_points == []
    assert result.action_items == []


def test_null_values_get_defaults():
    result = parse_summary_payload('{"summary": null, "keyPoints": null, "actionItems": null}')
    assert result.summary == NO_SUMMARY
    assert result.key_points == []


def test_items_are_trimmed_strings_and_blanks_dropped():
    raw = json.dumps({"summary": " S ", "keyPoints": [" a ", "", 3, None], "action_items": ["do it"]})
    result = parse_summary_payload(raw)
    assert result.summary == "S"
    assert result.key_points == ["a", "3"]
    assert result.action_items == ["do it"]


@pytest.mark.parametrize("raw", ["", "   ", "not json", "[1, 2]", '"just a string"'])
def test_unusable_responses_raise(raw):
    with pytest.raises(SummarizationError):
        parse_summary_payload(raw)


def test_transport_error_becomes_summarization_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    llm = CannedCompleter(error=openai.APIConnectionError(request=request))

    with pytest.raises(SummarizationError):
        SummaryService(llm).summarize("text")


def _fake_openai(captured, content):
    def create(**kwargs):
        captured.update(kwargs)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    def transcribe(**kwargs):
        captured.update(kwargs)
        return "spoken words"

    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create)),
        audio=SimpleNamespace(transcriptions=SimpleNamespace(create=transcribe)),
    )


def test_openai_client_requests_json_mode_once():
    captured = {}
    client = OpenAIClient(_fake_openai(captured, '{"summary": "s"}'), model="gpt-4o")

    assert client.complete_json("sys", "prompt") == '{"summary": "s"}'
    assert captured["response_format"] == {"type": "json_object"}
    assert captured["temperature"] == 0.3
    assert captured["max_tokens"] == 2000
    assert captured["messages"][0] == {"role": "system", "content": "sys"}


def test_openai_client_transcribes_with_text_format():
    captured = {}
    client = OpenAIClient(_fake_openai(captured, None), transcribe_model="whisper-1")

    assert client.transcribe(b"RIFF", "call.wav", "audio/wav") == "spoken words"
    assert captured["model"] == "whisper-1"
    assert captured["response_format"] == "text"
    assert captured["file"] == ("call.wav", b"RIFF", "audio/wav")


def test_openai_client_requires_api_key(settings):
    with pytest.raises(RuntimeError):
        OpenAIClient.from_settings(settings)
