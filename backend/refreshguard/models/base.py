"""Column mixins shared by the ``users`` and ``refresh_credentials`` tables."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


def db_timestamp(*, refresh_on_update: bool = False) -> Mapped[datetime]:
    """Timezone-aware column the database fills with ``now()``."""
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now() if refresh_on_update else None,
    )


class PKMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class CreatedAtMixin:
    created_at: Mapped[datetime] = db_timestamp()


class TimestampMixin(CreatedAtMixin):
    updated_at: Mapped[datetime] = db_timestamp(refresh_on_update=True)


class ReprMixin:
    """``<Model id=.. attr=..>`` built from the names in ``_repr_attrs``."""

    _repr_attrs: tuple[str, ...] = ()

    def __repr__(self) -> str:
        fields = [f"id={getattr(self, 'id', None)}"]
        fields.extend(f"{name}={getattr(self, name, None)!r}" for name in self._repr_attrs)
        return f"<{type(self).__name__} {' '.join(fields)}>"
