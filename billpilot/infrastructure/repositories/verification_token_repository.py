"""Repository for VerificationToken persistence."""

import sqlite3
from typing import Optional

from billpilot.domain.models.verification_token import TokenPurpose, VerificationToken
from billpilot.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent,
    parse_timestamp,
    utcnow_iso,
)


class VerificationTokenRepository:
    """Repository for managing VerificationToken entities in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = ensure_parent(db_path)
        self._initialize_table()

    def _initialize_table(self) -> None:
        """Create verification_tokens table if it doesn't exist."""
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS verification_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    purpose TEXT NOT NULL,
                    token TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (user_id, purpose)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_verification_tokens_token ON verification_tokens(token)"
            )

    def replace(self, user_id: int, purpose: TokenPurpose, token: str) -> VerificationToken:
        """Store a new token for the user, dropping any previous one for the same purpose."""
        purpose = TokenPurpose(purpose)
        now = utcnow_iso()
        with connect(self.db_path) as conn:
            conn.execute(
                "DELETE FROM verification_tokens WHERE user_id = ? AND purpose = ?",
                (user_id, purpose.value),
            )
            cursor = conn.execute(
                """
                INSERT INTO verification_tokens (user_id, purpose, token, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, purpose.value, token, now),
            )
            token_id = cursor.lastrowid

        return VerificationToken(
            id=token_id,
            user_id=user_id,
            token=token,
            purpose=purpose,
            created_at=parse_timestamp(now),
        )

    def find(self, user_id: int, token: str, purpose: TokenPurpose) -> Optional[VerificationToken]:
        """Get the token matching user, value and purpose."""
        with connect(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT * FROM verification_tokens
                WHERE user_id = ? AND token = ? AND purpose = ?
                """,
                (user_id, token, TokenPurpose(purpose).value),
            ).fetchone()
        return self._row_to_token(row) if row else None

    def find_for_user(self, user_id: int, purpose: TokenPurpose) -> Optional[VerificationToken]:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM verification_tokens WHERE user_id = ? AND purpose = ?",
                (user_id, TokenPurpose(purpose).value),
            ).fetchone()
        return self._row_to_token(row) if row else None

    def delete(self, token_id: int) -> None:
        with connect(self.db_path) as conn:
            conn.execute("DELETE FROM verification_tokens WHERE id = ?", (token_id,))

    def delete_for_user(self, user_id: int) -> None:
        with connect(self.db_path) as conn:
            conn.execute("DELETE FROM verification_tokens WHERE user_id = ?", (user_id,))

    def _row_to_token(self, row: sqlite3.Row) -> VerificationToken:
        return VerificationToken(
            id=row["id"],
            user_id=row["user_id"],
            token=row["token"],
            purpose=TokenPurpose(row["purpose"]),
            created_at=parse_timestamp(row["created_at"]),
        )
