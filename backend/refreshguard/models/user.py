"""Principal model: the identity that owns a refresh credential set."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import check_password_hash, generate_password_hash

from refreshguard.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

if TYPE_CHECKING:
    from .refresh_credential import RefreshCredential


def normalize_email(value: str) -> str:
    """Lowercase and trim ``value``; lookups and storage share this form."""
    return value.strip().lower()


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authenticated principal.

    Fields
    ------
    email : str
        Login email, stored via :func:`normalize_email`.
    password_hash : str
        Werkzeug password hash; assign plain text through ``password``.
    full_name : str | None
        Optional display name.
    credential_version : int
        Version of the refresh credential set. Every write to the set bumps it;
        writers compare it to detect concurrent rotations.
    refresh_credentials : list[RefreshCredential]
        Refresh-token identifiers currently honored for this principal.
    """

    __tablename__ = "users"
    _repr_attrs = ("email", "credential_version")

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    credential_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    refresh_credentials: Mapped[list[RefreshCredential]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="RefreshCredential.position",
    )

    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    @property
    def principal_id(self) -> str:
        """Opaque principal identifier used by tokens and the session store."""
        return str(self.id)

    @property
    def password(self) -> NoReturn:  # pragma: no cover - write-only
        raise AttributeError("password is write-only; use verify_password()")

    @password.setter
    def password(self, raw: str) -> None:
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        """Check ``raw`` against the stored hash (``False`` when none is set)."""
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw)

    @validates("email")
    def _validate_email(self, key: str, value: str) -> str:
        # Shape check only; the API schema does the full validation
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Email is required.")
        email = normalize_email(value)
        local, _, domain = email.partition("@")
        if not local or "." not in domain:
            raise ValueError("Email format looks invalid.")
        return email
