"""
Summarization client: fixed prompt in, structured summary out.

One model request per job. Missing keys in the model's JSON are replaced by
defaults instead of failing the job; transport or decoding problems surface
as a single SummarizationError.
"""

import json
import logging
from typing import Any, List, Protocol, Tuple

import openai

from autobrief.core.domain.summary_job import SummaryResult
from autobrief.core.errors import SummarizationError

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 15000
NO_SUMMARY = "No summary available"

SYSTEM_PROMPT = (
    "You are an expert business analyst and meeting summarizer. "
    "Provide clear, actionable insights from the content provided. "
    "Your response must be in JSON format."
)

TRUNCATION_NOTE = (
    "[Note: The document was too long and has been truncated. "
    "This summary is based on the beginning of the document.]"
)

PROMPT_TEMPLATE = """Please analyze the following content and provide:
1. A comprehensive executive summary (2-3 paragraphs)
2. 5-7 key points that were discussed or mentioned
3. 3-5 specific action items that need to be completed

Content to analyze:
{content}{note}

Please format your response as JSON with the following structure:
{{
  "summary": "Executive summary here...",
  "keyPoints": ["Key point 1", "Key point 2", ...],
  "actionItems": ["Action item 1", "Action item 2", ...]
}}
"""


class JsonCompleter(Protocol):
    def complete_json(self, system: str, prompt: str) -> str: ...


def truncate_content(text: str, max_chars: int = MAX_CONTENT_CHARS) -> Tuple[str, bool]:
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars], True


def build_prompt(content: str, truncated: bool) -> str:
    note = f"\n\n{TRUNCATION_NOTE}" if truncated else ""
    return PROMPT_TEMPLATE.format(content=content, note=note)


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if item is not None]
    return [item for item in items if item]


def parse_summary_payload(raw: str) -> SummaryResult:
    if not raw or not raw.strip():
        raise SummarizationError("No response from the language model.")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SummarizationError(f"Model response is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise SummarizationError("Model response is not a JSON object.")

    summary = parsed.get("summary")
    summary_text = str(summary).strip() if summary is not None else ""
    key_points = parsed.get("keyPoints", parsed.get("key_points"))
    action_items = parsed.get("actionItems", parsed.get("action_items"))
    return SummaryResult(
        summary=summary_text or NO_SUMMARY,
        key_points=_string_list(key_points),
        action_items=_string_list(action_items),
    )


class SummaryService:
    def __init__(self, llm: JsonCompleter, max_chars: int = MAX_CONTENT_CHARS) -> None:
        self._llm = llm
        self._max_chars = max_chars

    def summarize(self, text: str) -> SummaryResult:
        content, truncated = truncate_content(text, self._max_chars)
        if truncated:
            logger.info(
                "Content truncated before summarization",
                extra={"original_chars": len(text), "max_chars": self._max_chars},
            )
        prompt = build_prompt(content, truncated)
        try:
            raw = self._llm.complete_json(SYSTEM_PROMPT, prompt)
        except openai.OpenAIError as exc:
            raise SummarizationError(f"Language model request failed: {exc}") from exc
        return parse_summary_payload(raw)
