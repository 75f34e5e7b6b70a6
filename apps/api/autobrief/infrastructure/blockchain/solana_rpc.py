import itertools
import logging
from typing import Any, Dict, Optional

import requests

from autobrief.core.domain.payment import TransferDetails

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_TIMEOUT = 10.0


class SolanaRpcError(Exception):
    pass


class SolanaRpcClient:
    """Minimal JSON-RPC client; only `getTransaction` is needed for payment checks."""

    def __init__(
        self,
        url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url
        self._session = session or requests.Session()
        self._timeout = timeout
        self._ids = itertools.count(1)

    def _call(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self._session.post(self.url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Solana RPC transport error", extra={"method": method})
            raise SolanaRpcError(f"RPC request failed: {exc}") from exc

        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise SolanaRpcError(f"RPC error: {message}")
        return body.get("result")

    def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )


def find_transfer(tx: Dict[str, Any]) -> Optional[TransferDetails]:
    """First parsed system-program `transfer` instruction, if any."""
    message = (tx.get("transaction") or {}).get("message") or {}
    for ix in message.get("instructions") or []:
        parsed = ix.get("parsed") if isinstance(ix, dict) else None
        if not isinstance(parsed, dict) or parsed.get("type") != "transfer":
            continue
        info = parsed.get("info") or {}
        if "destination" not in info or "lamports" not in info:
            continue
        return TransferDetails(
            source=info.get("source"),
            destination=info["destination"],
            lamports=int(info["lamports"]),
        )
    return None


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL
