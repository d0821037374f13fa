"""Repository abstraction over the auth/persistence provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from glucotracker.model import Reading


@dataclass(frozen=True)
class User:
    """Authenticated account."""

    id: str
    email: str
    full_name: str
    created_at: datetime

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


@dataclass(frozen=True)
class Session:
    """Signed-in session."""

    token: str
    user: User
    created_at: datetime


class ReadingRepository(ABC):
    """Auth and reading storage used by the front ends.

    Implementations are passed explicitly to whatever needs them.
    """

    @abstractmethod
    def sign_up(self, email: str, password: str, full_name: str = "") -> User:
        """Create an account.

        Raises:
            AuthError: If the email is already registered or input is invalid.
        """

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Session:
        """Start a session and make it the current one.

        Raises:
            AuthError: If the credentials are wrong.
        """

    @abstractmethod
    def get_session(self, token: str | None = None) -> Session | None:
        """Return the session for ``token`` (or the current one), if any."""

    @abstractmethod
    def sign_out(self, token: str | None = None) -> None:
        """End the session for ``token`` (or the current one)."""

    @abstractmethod
    def list_readings(self, user_id: str) -> list[Reading]:
        """Readings of ``user_id``, newest first."""

    @abstractmethod
    def insert_reading(self, user_id: str, reading: Reading) -> Reading:
        """Persist ``reading`` and return it with its assigned id."""

    @abstractmethod
    def request_password_reset(self, email: str) -> str | None:
        """Issue a single-use reset token; None if the email is unknown."""

    @abstractmethod
    def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password using a reset token.

        Raises:
            AuthError: If the token is unknown or already used.
        """
