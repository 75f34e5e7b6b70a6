from typing import Optional

from psycopg_pool import ConnectionPool

from autobrief.core.domain.user import User
from autobrief.core.errors import PaymentRejected
from autobrief.infrastructure.db.user_repository import USER_COLUMNS, row_to_user

TABLE_DDL = """
CREATE TABLE IF NOT EXISTS processed_transactions (
    signature TEXT PRIMARY KEY,
    user_id TEXT,
    plan TEXT NOT NULL,
    amount DOUBLE PRECISION NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


class PaymentRepository:
    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def ensure_table(self) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(TABLE_DDL)
            conn.commit()

    def exists(self, signature: str) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                "SELECT 1 AS found FROM processed_transactions WHERE signature = %(signature)s",
                {"signature": signature},
            )
            row = cur.fetchone()
        return row is not None

    def record_and_upgrade(
        self, signature: str, user_id: str, plan: str, amount: float
    ) -> Optional[User]:
        """
        Record the signature and set the payer's plan under one commit.

        Returns None when the signature is already recorded (the primary key
        is the replay guard). If the plan update fails the signature row is
        rolled back with it, so the same payment can be submitted again.
        """
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO processed_transactions (signature, user_id, plan, amount)
                VALUES (%(signature)s, %(user_id)s, %(plan)s, %(amount)s)
                ON CONFLICT (signature) DO NOTHING
                RETURNING signature
                """,
                {
                    "signature": signature,
                    "user_id": user_id,
                    "plan": plan,
                    "amount": amount,
                },
            )
            if cur.fetchone() is None:
                conn.rollback()
                return None

            cur.execute(
                f"""
                UPDATE users SET plan = %(plan)s, updated_at = now()
                WHERE user_id = %(user_id)s
                RETURNING {USER_COLUMNS}
                """,
                {"user_id": user_id, "plan": plan},
            )
            row = cur.fetchone()
            if row is None:
                raise PaymentRejected("Account not found.")
            conn.commit()
        return row_to_user(row)
