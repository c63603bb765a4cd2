"""Column helpers shared by the authorization tables."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, MappedColumn, mapped_column
from ulid import ULID


def new_id() -> str:
    return str(ULID())


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def ulid_primary_key(column_name: str) -> MappedColumn[str]:
    """Map a model's ``id`` attribute onto a ULID column such as ``role_id``."""

    return mapped_column(column_name, String(26), primary_key=True, default=new_id)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


__all__ = ["TimestampMixin", "new_id", "ulid_primary_key", "utc_now"]
