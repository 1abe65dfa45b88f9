"""Declarative base and column helpers shared by every ORM model.

Constraint names follow NAMING_CONVENTION. The tenancy repositories
translate IntegrityError into conflict errors by matching these names,
and the migrations spell them out literally, so the three must agree.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Request/response payloads and audit details; JSONB on PostgreSQL
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Timezone-aware UTC now, evaluated at INSERT/UPDATE time."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models.

    `Mapped[dict[str, Any]]` columns map to JsonDocument without an
    explicit type.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map = {
        dict[str, Any]: JsonDocument,
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """created_at / updated_at columns maintained on the Python side."""

    created_at: Mapped[datetime] = mapped_column(
        insert_default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        insert_default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )
