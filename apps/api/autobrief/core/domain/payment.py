from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TransferDetails:
    """The parsed system-program transfer found in a confirmed transaction."""

    source: Optional[str]
    destination: str
    lamports: int
