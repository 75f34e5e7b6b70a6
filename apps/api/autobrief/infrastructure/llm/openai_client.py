import logging
from typing import Any, Dict, Iterator, List, Optional

import openai

from autobrief.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2000


class OpenAIClient:
    """
    Thin wrapper over the OpenAI SDK: JSON-mode completions for summaries,
    streamed completions for chat and whole-file transcription. No retries.
    """

    def __init__(
        self,
        client: "openai.OpenAI",
        model: str = "gpt-4o",
        transcribe_model: str = "whisper-1",
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self._client = client
        self.model = model
        self.transcribe_model = transcribe_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIClient":
        if not settings.openai_api_key:
            raise RuntimeError("OpenAI client not configured")
        # SDK-level retries are disabled: one request per job.
        client = openai.OpenAI(api_key=settings.openai_api_key, max_retries=0)
        return cls(
            client,
            model=settings.openai_model,
            transcribe_model=settings.openai_transcribe_model,
        )

    def _sampling_kwargs(self) -> Dict[str, Any]:
        if "gpt-5" in self.model or "nano" in self.model:
            # Nano models: keep default temperature; use max_completion_tokens.
            return {"max_completion_tokens": self.max_tokens}
        return {"temperature": self.temperature, "max_tokens": self.max_tokens}

    def complete_json(self, system: str, prompt: str) -> str:
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            **self._sampling_kwargs(),
        )
        content: Optional[str] = resp.choices[0].message.content if resp.choices else None
        return content or ""

    def transcribe(self, data: bytes, filename: str, media_type: str) -> str:
        logger.info(
            "Transcribing media",
            extra={"media_type": media_type, "size_bytes": len(data)},
        )
        transcript = self._client.audio.transcriptions.create(
            model=self.transcribe_model,
            file=(filename, data, media_type),
            response_format="text",
        )
        # response_format="text" yields a plain string; older SDKs return an object.
        if isinstance(transcript, str):
            return transcript
        return getattr(transcript, "text", "") or ""

    def stream_chat(self, messages: List[Dict[str, str]]) -> Iterator[str]:
        """
        Open a streamed completion and return an iterator over its text deltas.
        The request is sent before this returns, so connection and auth errors
        raise here rather than on first iteration.
        """
        stream = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            stream=True,
            **self._sampling_kwargs(),
        )
        return _text_deltas(stream)


def _text_deltas(stream) -> Iterator[str]:
    for chunk in stream:
        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta
        if delta and delta.content:
            yield delta.content
