from io import BytesIO
from typing import List

import docx


def extract_plain_text_from_docx(data: bytes) -> str:
    """Raw body text: paragraphs first, then table cells, one per line."""
    document = docx.Document(BytesIO(data))
    lines: List[str] = [p.text.strip() for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines).strip()
