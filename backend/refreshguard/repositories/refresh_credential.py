"""Persistence helpers for refresh credential rows and the set version."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select, update

from refreshguard.models.refresh_credential import RefreshCredential
from refreshguard.models.user import User
from refreshguard.repositories.base import BaseRepository


class RefreshCredentialRepository(BaseRepository[RefreshCredential]):
    """Read and rewrite the refresh credential rows of one principal."""

    model = RefreshCredential

    def current_version(self, user_id: int) -> int | None:
        """Return the stored ``credential_version`` (``None`` for unknown users)."""
        stmt = select(User.credential_version).where(User.id == user_id)
        return self.scalar(stmt)

    def token_ids_for(self, user_id: int) -> list[str]:
        """List the honored token ids in insertion order."""
        stmt = (
            select(RefreshCredential.token_id)
            .where(RefreshCredential.user_id == user_id)
            .order_by(RefreshCredential.position, RefreshCredential.id)
        )
        return self.scalars(stmt)

    def owner_of(self, token_id: str) -> int | None:
        """Return the user id honoring ``token_id`` if any."""
        stmt = select(RefreshCredential.user_id).where(RefreshCredential.token_id == token_id)
        return self.scalar(stmt)

    def compare_and_bump_version(self, user_id: int, expected: int) -> bool:
        """Increment the version only if it still equals ``expected``.

        Single ``UPDATE ... WHERE credential_version = :expected`` so the check
        and the bump are one atomic statement on every dialect.

        :returns: ``True`` when this writer won the race.
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.credential_version == expected)
            .values(credential_version=User.credential_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def replace_for(self, user_id: int, token_ids: Sequence[str]) -> None:
        """Make the stored rows match ``token_ids`` exactly (order included)."""
        keep = set(token_ids)
        existing = {
            row.token_id: row
            for row in self.session.execute(
                select(RefreshCredential).where(RefreshCredential.user_id == user_id)
            ).scalars()
        }
        stale = [existing.pop(tid) for tid in list(existing) if tid not in keep]
        for row in stale:
            # ORM delete: the identity map must drop the row before SQLite reuses its id
            self.session.delete(row)
        if stale:
            self.flush()
        for position, token_id in enumerate(token_ids):
            row = existing.get(token_id)
            if row is None:
                self.session.add(
                    RefreshCredential(user_id=user_id, token_id=token_id, position=position)
                )
            else:
                row.position = position
        self.flush()
