import uuid
from typing import Optional

from psycopg_pool import ConnectionPool

from autobrief.core.domain.user import User

TABLE_DDL = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    full_name TEXT,
    plan TEXT NOT NULL DEFAULT 'free',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


USER_COLUMNS = "user_id, email, password_hash, full_name, plan"


def row_to_user(row) -> User:
    getter = row.get if hasattr(row, "get") else lambda k: row[k]
    return User(
        user_id=getter("user_id"),
        email=getter("email"),
        password_hash=getter("password_hash"),
        full_name=getter("full_name"),
        plan=getter("plan") or "free",
    )


class UserRepository:
    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def ensure_table(self) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(TABLE_DDL)
            cur.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS plan TEXT NOT NULL DEFAULT 'free';")
            conn.commit()

    def create_user(
        self, email: str, password_hash: str, full_name: Optional[str]
    ) -> User:
        user_id = str(uuid.uuid4())
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO users (user_id, email, password_hash, full_name)
                VALUES (%(user_id)s, %(email)s, %(password_hash)s, %(full_name)s)
                RETURNING user_id, email, password_hash, full_name, plan
                """,
                {
                    "user_id": user_id,
                    "email": email.lower(),
                    "password_hash": password_hash,
                    "full_name": full_name,
                },
            )
            row = cur.fetchone()
            conn.commit()
        return row_to_user(row)

    def get_by_email(self, email: str) -> Optional[User]:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT user_id, email, password_hash, full_name, plan
                FROM users
                WHERE email = %(email)s
                """,
                {"email": email.lower()},
            )
            row = cur.fetchone()
        return row_to_user(row) if row else None

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT user_id, email, password_hash, full_name, plan
                FROM users
                WHERE user_id = %(user_id)s
                """,
                {"user_id": user_id},
            )
            row = cur.fetchone()
        return row_to_user(row) if row else None

