"""Shared base fields for all models."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin(SQLModel):
    """Created / updated timestamps injected into every table.

    Stored as naive UTC; the column type is pinned so it does not follow
    SQLModel's default mapping for ``datetime``.
    """

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(), nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(), nullable=False)


class AuditMixin(SQLModel):
    """Ids of the callers that created / last modified a row."""

    created_by: int = Field(default=0, nullable=False)
    updated_by: int = Field(default=0, nullable=False)
