"""Plain data carried in and out of :class:`IdentityService`.

Route handlers build the ``*In`` objects from validated payloads; ORM rows
never leave the service, only :class:`UserPublicOut` does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refreshguard.models.user import User


@dataclass(frozen=True, slots=True)
class UserRegisterIn:
    """
    :param email: Login email; stored lowercased.
    :param password: Plain text, hashed by the model before it is stored.
    :param full_name: Optional display name.
    """

    email: str
    password: str
    full_name: str | None = None


@dataclass(frozen=True, slots=True)
class UserAuthIn:
    email: str
    password: str


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """Principal as shown to API callers (no hash, no credential version)."""

    id: int
    email: str
    full_name: str | None

    @property
    def principal_id(self) -> str:
        """Identifier carried by tokens and the session store."""
        return str(self.id)

    @classmethod
    def from_model(cls, user: User) -> UserPublicOut:
        return cls(id=user.id, email=user.email, full_name=user.full_name)
