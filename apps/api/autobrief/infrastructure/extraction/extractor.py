import logging
from typing import Callable, Protocol

from autobrief.core.errors import ExtractionError, UnsupportedMediaType
from autobrief.infrastructure.extraction.docx_text import extract_plain_text_from_docx
from autobrief.infrastructure.extraction.pdf_text import extract_plain_text_from_pdf

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class Transcriber(Protocol):
    def transcribe(self, data: bytes, filename: str, media_type: str) -> str: ...


def media_kind(media_type: str) -> str:
    normalized = (media_type or "").split(";", 1)[0].strip().lower()
    if normalized == PDF_MEDIA_TYPE:
        return "pdf"
    if normalized == DOCX_MEDIA_TYPE:
        return "docx"
    if normalized.startswith("audio/") or normalized.startswith("video/"):
        return "media"
    return "unsupported"


class TextExtractor:
    """Dispatches on the media type declared at intake, never on the storage key."""

    def __init__(
        self,
        transcriber: Transcriber,
        pdf_extractor: Callable[[bytes], str] = extract_plain_text_from_pdf,
        docx_extractor: Callable[[bytes], str] = extract_plain_text_from_docx,
    ) -> None:
        self._transcriber = transcriber
        self._pdf = pdf_extractor
        self._docx = docx_extractor

    def extract(self, data: bytes, media_type: str, filename: str) -> str:
        kind = media_kind(media_type)
        if kind == "unsupported":
            raise UnsupportedMediaType(f"File type not supported: {media_type or 'unknown'}")

        try:
            if kind == "pdf":
                return self._pdf(data)
            if kind == "docx":
                return self._docx(data)
            return self._transcriber.transcribe(data, filename, media_type)
        except ExtractionError:
            raise
        except Exception as exc:
            # Parsers and the transcription API raise a wide range of types.
            logger.exception("Extraction failed", extra={"media_type": media_type})
            label = {"pdf": "PDF", "docx": "DOCX", "media": "audio/video"}[kind]
            raise ExtractionError(f"Failed to read {label}: {exc}") from exc
