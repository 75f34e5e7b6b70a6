"""
PDF text extraction.

Pages are read in order with pdfplumber and joined by a single line break.
"""

from __future__ import annotations

from io import BytesIO
from typing import List

import pdfplumber

SOFT_HYPHEN = "\u00ad"


def _normalize_line(text: str) -> str:
    text = text.replace(SOFT_HYPHEN, "")
    return " ".join(text.split())


def _page_to_text(page: pdfplumber.page.Page) -> str:
    extracted = page.extract_text(x_tolerance=1.5, y_tolerance=3.0) or ""
    lines = [_normalize_line(line) for line in extracted.splitlines()]
    return "\n".join(line for line in lines if line)


def extract_plain_text_from_pdf(data: bytes) -> str:
    with pdfplumber.open(BytesIO(data)) as pdf:
        page_texts: List[str] = [_page_to_text(page) for page in pdf.pages]

    return "\n".join(text for text in page_texts if text).strip()
