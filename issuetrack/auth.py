"""User registration and credential checks.

Failed logins never reveal whether the email exists or the password was
wrong; the error message is the same either way.
"""

import contextlib
import sqlite3
from datetime import datetime
from typing import Any, Generator, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from issuetrack.database import Database
from issuetrack.errors import PersistenceFailure, RegistrationError, Unauthorized
from issuetrack.logging import get_logger
from issuetrack.models import User

logger = get_logger("auth")

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Registers users and verifies their credentials."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @contextlib.contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            with self.db.get_connection() as conn:
                yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            logger.error("Persistence failure: %s", e)
            raise PersistenceFailure(str(e)) from e

    def register(self, email: str, password: str, display_name: Optional[str] = None) -> User:
        """Create a new account.

        Args:
            email: Login email, unique regardless of case.
            password: Plain-text password, at least 6 characters.
            display_name: Optional name shown instead of the email.

        Returns:
            The new user.

        Raises:
            RegistrationError: If the email is invalid or taken, or the
                password is too short.
        """
        email = (email or "").strip()
        if "@" not in email:
            raise RegistrationError("A valid email address is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise RegistrationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        user = User(email=email, display_name=(display_name or "").strip() or None)
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO users (email, display_name, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                """,
                    (
                        user.email,
                        user.display_name,
                        generate_password_hash(password),
                        user.created_at.isoformat(),
                    ),
                )
                user.id = cursor.lastrowid
        except sqlite3.IntegrityError:
            raise RegistrationError(f"An account for {email} already exists") from None

        logger.info("Registered user %s", user.email)
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Verify credentials.

        Args:
            email: Login email (case-insensitive).
            password: Plain-text password.

        Returns:
            The matching user.

        Raises:
            Unauthorized: If the credentials do not match an account.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", ((email or "").strip(),)
            ).fetchone()

        if row is None or not check_password_hash(row["password_hash"], password or ""):
            logger.warning("Failed login for %s", email)
            raise Unauthorized(INVALID_CREDENTIALS)

        return self._row_to_user(row)

    def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by ID, or None if it does not exist."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def _row_to_user(self, row: Any) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
