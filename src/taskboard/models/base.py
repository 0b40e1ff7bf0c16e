from collections.abc import Iterable
from datetime import date, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    def attribute_values(self, names: Iterable[str]) -> dict[str, Any]:
        """Return the named column values as JSON-ready data (dates as ISO 8601)."""
        values = {}
        for name in names:
            value = getattr(self, name, None)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            values[name] = value
        return values


class UUIDPrimaryKeyMixin:
    """Mixin providing a UUID primary key stored as its 36-character string form."""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )


class IntegerPrimaryKeyMixin:
    """Mixin providing an auto-incrementing integer primary key."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class AuditMixin:
    """Mixin providing created_at and updated_at, both set by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
