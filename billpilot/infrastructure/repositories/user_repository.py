"""Repository for User persistence."""

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from billpilot.core.exceptions import DuplicateIdentity, NotFound, ValidationError
from billpilot.domain.models.user import USER_ROLE, User
from billpilot.domain.validation import (
    normalize_email,
    validate_name,
    validate_password_strength,
    validate_phone_number,
    validate_username,
)
from billpilot.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent,
    parse_timestamp,
    utcnow_iso,
)
from billpilot.services.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "avatar",
    "business_name",
    "phone_number",
    "address",
    "city",
    "country",
)


class UserRepository:
    """
    Repository for managing User entities in SQLite.

    Passwords are accepted in plain text and hashed before they are written;
    the refresh-token set lives in its own table so that single tokens can be
    added and removed atomically.
    """

    def __init__(self, db_path: str, password_hasher: Optional[PasswordHasher] = None):
        self.db_path = ensure_parent(db_path)
        self.password_hasher = password_hasher or PasswordHasher()
        self._initialize_table()

    def _initialize_table(self) -> None:
        """Create users and refresh_tokens tables if they don't exist."""
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    username TEXT UNIQUE NOT NULL COLLATE NOCASE,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    is_email_verified INTEGER NOT NULL DEFAULT 0,
                    active INTEGER NOT NULL DEFAULT 1,
                    provider TEXT NOT NULL DEFAULT 'email',
                    google_id TEXT,
                    avatar TEXT,
                    business_name TEXT,
                    phone_number TEXT,
                    address TEXT,
                    city TEXT,
                    country TEXT,
                    roles TEXT NOT NULL,
                    password_changed_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS refresh_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    token TEXT UNIQUE NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_refresh_tokens_user_id ON refresh_tokens(user_id)"
            )

    def create(
        self,
        email: str,
        username: str,
        first_name: str,
        last_name: str,
        password: str,
        *,
        is_email_verified: bool = False,
        roles: Optional[List[str]] = None,
        provider: str = "email",
        profile: Optional[Dict[str, Any]] = None,
    ) -> User:
        """Create a new user. Raises DuplicateIdentity or ValidationError."""
        email_clean = normalize_email(email)
        username_clean = validate_username(username)
        first = validate_name(first_name, "First name")
        last = validate_name(last_name, "Last name")
        validate_password_strength(password)
        extra = self._clean_profile(profile or {})
        extra.pop("first_name", None)
        extra.pop("last_name", None)
        role_list = list(roles) if roles else [USER_ROLE]

        if self.get_by_email(email_clean):
            raise DuplicateIdentity(
                "The email address you have entered is already associated with another account!"
            )
        if self.get_by_username(username_clean):
            raise DuplicateIdentity("That username is already taken")

        password_hash = self.password_hasher.hash(password)
        now = utcnow_iso()
        columns = [
            "email", "username", "first_name", "last_name", "password_hash",
            "is_email_verified", "active", "provider", "roles", "created_at", "updated_at",
        ]
        values: List[Any] = [
            email_clean, username_clean, first, last, password_hash,
            int(is_email_verified), 1, provider, json.dumps(role_list), now, now,
        ]
        for key, value in extra.items():
            columns.append(key)
            values.append(value)
        placeholders = ", ".join("?" for _ in columns)

        try:
            with connect(self.db_path) as conn:
                cursor = conn.execute(
                    f"INSERT INTO users ({', '.join(columns)}) VALUES ({placeholders})",
                    values,
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            # lost a race against a concurrent registration
            raise DuplicateIdentity("That email address or username is already registered") from exc

        logger.info("Created user %s", user_id)
        return self._require(user_id)

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email, case-insensitively."""
        return self._fetch_one(
            "SELECT * FROM users WHERE email = ?", ((email or "").strip().lower(),)
        )

    def get_by_username(self, username: str) -> Optional[User]:
        return self._fetch_one(
            "SELECT * FROM users WHERE username = ?", ((username or "").strip(),)
        )

    def get_by_refresh_token(self, token: str) -> Optional[User]:
        """Get the user currently holding this exact refresh token."""
        return self._fetch_one(
            """
            SELECT users.* FROM users
            JOIN refresh_tokens ON refresh_tokens.user_id = users.id
            WHERE refresh_tokens.token = ?
            """,
            (token,),
        )

    def update_profile(self, user_id: int, fields: Dict[str, Any]) -> User:
        """Update editable profile fields; credential and identity fields are rejected."""
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(
                f"You are not allowed to update {', '.join(sorted(unknown))} on this route"
            )
        cleaned = self._clean_profile(fields)
        if not cleaned:
            return self._require(user_id)
        self._update_columns(user_id, cleaned)
        return self._require(user_id)

    def update_password(self, user_id: int, password: str) -> User:
        """Hash and store a new password, stamping password_changed_at."""
        validate_password_strength(password)
        password_hash = self.password_hasher.hash(password)
        self._update_columns(
            user_id, {"password_hash": password_hash, "password_changed_at": utcnow_iso()}
        )
        return self._require(user_id)

    def mark_email_verified(self, user_id: int) -> User:
        self._update_columns(user_id, {"is_email_verified": 1})
        return self._require(user_id)

    def set_active(self, user_id: int, active: bool) -> User:
        self._update_columns(user_id, {"active": int(active)})
        return self._require(user_id)

    def rotate_refresh_token(
        self,
        user_id: int,
        new_token: str,
        old_token: Optional[str] = None,
        *,
        revoke_all: bool = False,
        require_old: bool = False,
    ) -> bool:
        """
        Replace refresh tokens for a user in one transaction.

        Args:
            user_id: Owner of the token set
            new_token: Token appended to the set
            old_token: Token removed from the set, if any
            revoke_all: Drop every stored token before appending
            require_old: Abort without appending when old_token was not present

        Returns:
            True if old_token was removed (or none was given), False otherwise
        """
        now = utcnow_iso()
        with connect(self.db_path) as conn:
            removed = True
            if revoke_all:
                conn.execute("DELETE FROM refresh_tokens WHERE user_id = ?", (user_id,))
            elif old_token:
                cursor = conn.execute(
                    "DELETE FROM refresh_tokens WHERE user_id = ? AND token = ?",
                    (user_id, old_token),
                )
                removed = cursor.rowcount > 0
            if require_old and not removed:
                return False
            conn.execute(
                "INSERT INTO refresh_tokens (user_id, token, created_at) VALUES (?, ?, ?)",
                (user_id, new_token, now),
            )
            conn.execute("UPDATE users SET updated_at = ? WHERE id = ?", (now, user_id))
        return removed

    def remove_refresh_token(self, user_id: int, token: str) -> bool:
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM refresh_tokens WHERE user_id = ? AND token = ?",
                (user_id, token),
            )
            return cursor.rowcount > 0

    def clear_refresh_tokens(self, user_id: int) -> int:
        """Revoke every session of a user. Returns the number of tokens dropped."""
        with connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM refresh_tokens WHERE user_id = ?", (user_id,))
            return cursor.rowcount

    def list_all(self, limit: int, offset: int) -> List[User]:
        """List users, newest first."""
        with connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            return [self._row_to_user(conn, row) for row in rows]

    def count(self) -> int:
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT COUNT(*) FROM users").fetchone()
            return int(row[0])

    def delete(self, user_id: int) -> bool:
        """Delete a user together with its refresh tokens."""
        with connect(self.db_path) as conn:
            conn.execute("DELETE FROM refresh_tokens WHERE user_id = ?", (user_id,))
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    def _clean_profile(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        cleaned: Dict[str, Any] = {}
        for key, value in fields.items():
            if key not in PROFILE_FIELDS:
                continue
            if key == "first_name":
                value = validate_name(value, "First name")
            elif key == "last_name":
                value = validate_name(value, "Last name")
            elif key == "phone_number":
                value = validate_phone_number(value)
            elif isinstance(value, str):
                value = value.strip()
            cleaned[key] = value
        return cleaned

    def _update_columns(self, user_id: int, values: Dict[str, Any]) -> None:
        assignments = ", ".join(f"{column} = ?" for column in values)
        params = list(values.values()) + [utcnow_iso(), user_id]
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?", params
            )
            if cursor.rowcount == 0:
                raise NotFound("User not found!")

    def _require(self, user_id: Optional[int]) -> User:
        user = self.get_by_id(user_id) if user_id is not None else None
        if not user:
            raise NotFound("User not found!")
        return user

    def _fetch_one(self, query: str, params: tuple) -> Optional[User]:
        with connect(self.db_path) as conn:
            row = conn.execute(query, params).fetchone()
            if not row:
                return None
            return self._row_to_user(conn, row)

    def _row_to_user(self, conn: sqlite3.Connection, row: sqlite3.Row) -> User:
        """Convert database row to User entity."""
        tokens = [
            token_row["token"]
            for token_row in conn.execute(
                "SELECT token FROM refresh_tokens WHERE user_id = ? ORDER BY id", (row["id"],)
            )
        ]
        return User(
            id=row["id"],
            email=row["email"],
            username=row["username"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            password_hash=row["password_hash"],
            is_email_verified=bool(row["is_email_verified"]),
            active=bool(row["active"]),
            provider=row["provider"],
            google_id=row["google_id"],
            avatar=row["avatar"],
            business_name=row["business_name"],
            phone_number=row["phone_number"],
            address=row["address"],
            city=row["city"],
            country=row["country"],
            roles=json.loads(row["roles"]),
            refresh_tokens=tokens,
            password_changed_at=parse_timestamp(row["password_changed_at"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
