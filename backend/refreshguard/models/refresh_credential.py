"""Rows backing a principal's refresh credential set."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from refreshguard.core.extensions import db

from .base import CreatedAtMixin, PKMixin, ReprMixin

if TYPE_CHECKING:
    from .user import User


class RefreshCredential(PKMixin, ReprMixin, CreatedAtMixin, db.Model):
    """
    One honored refresh-token identifier.

    ``token_id`` is the SHA-256 digest of the encoded refresh token; raw tokens
    are never stored. ``position`` keeps insertion order for diagnostics.
    A token id is globally unique, so it resolves to at most one owner.
    """

    __tablename__ = "refresh_credentials"
    _repr_attrs = ("user_id", "position")

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped[User] = relationship(back_populates="refresh_credentials")

    __table_args__ = (UniqueConstraint("token_id", name="uq_refresh_credentials_token_id"),)
