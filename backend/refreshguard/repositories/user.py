"""Principal lookups and password checks."""

from __future__ import annotations

from functools import cache

from sqlalchemy import select
from werkzeug.security import check_password_hash, generate_password_hash

from refreshguard.models.user import User, normalize_email
from refreshguard.repositories.base import BaseRepository


@cache
def _decoy_hash() -> str:
    # Checked for unknown emails so they cost as much as a wrong password
    return generate_password_hash("refreshguard-decoy")


class UserRepository(BaseRepository[User]):
    """Users table access. Credential sets live in :mod:`.refresh_credential`."""

    model = User

    def get_by_email(self, email: str) -> User | None:
        return self.scalar(select(User).where(User.email == normalize_email(email)))

    def exists_by_email(self, email: str) -> bool:
        return self.scalar(select(User.id).where(User.email == normalize_email(email))) is not None

    def create(self, *, email: str, password: str, full_name: str | None = None) -> User:
        """Stage and flush a user; ``password`` is hashed by the model setter."""
        user = User(email=email, full_name=full_name)
        user.password = password
        return self.add(user)

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the user owning ``email`` when ``password`` matches it.

        Unknown emails and wrong passwords both yield ``None`` after one hash
        comparison.
        """
        user = self.get_by_email(email)
        if user is None:
            check_password_hash(_decoy_hash(), password)
            return None
        return user if user.verify_password(password) else None
