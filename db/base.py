"""
db/base.py

Declarative base and timestamp mixins shared by the scrape models.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Project-wide declarative base. Every ORM model inherits from it so Alembic
    sees a single metadata object.
    """

    type_annotation_map: dict[type, Any] = {}


class CreatedAtMixin:
    """
    Adds an immutable created_at column filled by the database.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class TimestampMixin(CreatedAtMixin):
    """
    created_at plus updated_at, refreshed on every ORM UPDATE.
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=utcnow,
    )
