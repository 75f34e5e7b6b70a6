import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from autobrief.config import Settings
from autobrief.core.domain.user import PAID_PLANS, User
from autobrief.core.errors import PaymentRejected
from autobrief.infrastructure.blockchain.solana_rpc import (
    SolanaRpcError,
    find_transfer,
    lamports_to_sol,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE_SOL = 0.0001


class TransactionSource(Protocol):
    def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]: ...


class PaymentLedger(Protocol):
    def exists(self, signature: str) -> bool: ...

    def record_and_upgrade(
        self, signature: str, user_id: str, plan: str, amount: float
    ) -> Optional[User]: ...


@dataclass(frozen=True)
class PaymentOutcome:
    signature: str
    plan: str
    amount: float
    user: User


class PaymentService:
    """
    Verifies a SOL transfer and upgrades the payer's plan once per signature.
    """

    def __init__(
        self,
        rpc: TransactionSource,
        ledger: PaymentLedger,
        settings: Settings,
    ) -> None:
        self._rpc = rpc
        self._ledger = ledger
        self._settings = settings

    def verify(self, user: User, signature: str, plan: str, amount: float) -> PaymentOutcome:
        signature = (signature or "").strip()
        if not signature:
            raise PaymentRejected("Missing transaction signature.")
        self._check_plan(plan, amount)

        if self._ledger.exists(signature):
            raise PaymentRejected("Transaction has already been processed.")

        tx = self._fetch(signature)
        self._check_transfer(tx, amount)

        upgraded = self._ledger.record_and_upgrade(signature, user.user_id, plan, amount)
        if upgraded is None:
            # Lost a race with a concurrent request for the same signature.
            raise PaymentRejected("Transaction has already been processed.")

        logger.info(
            "Payment verified",
            extra={"user_id": user.user_id, "plan": plan, "amount": amount, "signature": signature},
        )
        return PaymentOutcome(signature=signature, plan=plan, amount=amount, user=upgraded)

    def _check_plan(self, plan: str, amount: float) -> None:
        if plan not in PAID_PLANS:
            raise PaymentRejected(f"Unknown plan: {plan}")
        if amount is None or amount <= 0:
            raise PaymentRejected("Amount must be positive.")
        price = self._settings.plan_prices.get(plan)
        if price is not None and amount + AMOUNT_TOLERANCE_SOL < price:
            raise PaymentRejected(f"Amount {amount} SOL is below the {plan} price of {price} SOL.")

    def _fetch(self, signature: str) -> Dict[str, Any]:
        try:
            tx = self._rpc.get_parsed_transaction(signature)
        except SolanaRpcError as exc:
            raise PaymentRejected(f"Could not fetch transaction: {exc}") from exc
        if not tx:
            raise PaymentRejected("Transaction not found on the blockchain.")
        if (tx.get("meta") or {}).get("err"):
            raise PaymentRejected("Transaction failed on the blockchain.")
        return tx

    def _check_transfer(self, tx: Dict[str, Any], amount: float) -> None:
        transfer = find_transfer(tx)
        if transfer is None:
            raise PaymentRejected("No transfer instruction found in the transaction.")

        recipient = self._settings.payment_recipient_address
        if not recipient:
            raise RuntimeError("PAYMENT_RECIPIENT_ADDRESS is not configured")
        if transfer.destination != recipient:
            raise PaymentRejected(f"Invalid recipient. Expected {recipient}.")

        sent = lamports_to_sol(transfer.lamports)
        if abs(sent - amount) > AMOUNT_TOLERANCE_SOL:
            raise PaymentRejected(f"Invalid amount. Sent {sent} SOL, expected {amount} SOL.")
