"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, the UTC datetime column type, and the TrackedBase mixin for
    tenant scoping and timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Quantities are whole units: int maps to Integer.
    - Timestamps are always timezone-aware UTC, on every backend (SQLite drops
      tzinfo on the way out; UTCDateTime restores it).
    - Every tracked row carries its tenant_id.
"""

from datetime import date, datetime, timezone
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from enum import Enum

from sqlalchemy import Date, DateTime, Integer, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def enum_column(enum_cls: type[Enum]) -> SAEnum:
    """VARCHAR-backed enum column storing member values, not names."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalized to UTC.

    Naive values are rejected on bind; values read back without tzinfo
    (SQLite) are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to UTCDateTime -- always timezone-aware.
        - date maps to Date.
        - int maps to Integer -- stock quantities are whole units.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        date: Date(),
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with tenant scoping and audit timestamps.

    Timestamps are supplied by the services from the injected Clock rather
    than by server defaults, so tests and replays see deterministic values.
    """

    __abstract__ = True

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


UUID = PyUUID
