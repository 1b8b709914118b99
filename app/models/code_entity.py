"""Coded entity shape plus the schemas shared by every coded entity.

A coded entity is a reference table keyed by a short, immutable string
``code`` (customers, production lines, ...). Concrete tables subclass
``CodedEntityBase`` and only choose the table name and code width.
"""

from datetime import datetime
from enum import StrEnum
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Field, SQLModel

from app.models.base import AuditMixin, TimestampMixin

NAME_MAX_LENGTH = 255


class CodedEntityBase(AuditMixin, TimestampMixin, SQLModel):
    code: str = Field(primary_key=True, max_length=10)
    name: str = Field(max_length=NAME_MAX_LENGTH, nullable=False)
    is_active: bool = Field(default=True, nullable=False)


EntityT = TypeVar("EntityT", bound=CodedEntityBase)
DataT = TypeVar("DataT")


# ── Request bodies ───────────────────────────────────────────

class CodedEntityCreate(SQLModel):
    # Optional so missing fields reach the service validator and its messages.
    code: str | None = None
    name: str | None = None
    is_active: bool | None = None


class CodedEntityUpdate(SQLModel):
    # No ``code``: it is immutable after creation.
    name: str | None = None
    is_active: bool | None = None


class CodeCheckRequest(SQLModel):
    code: str | None = None


# ── Query options / pagination ───────────────────────────────

SortOrder = Literal["ASC", "DESC"]


class QueryOptions(BaseModel):
    page: int | None = None
    limit: int | None = None
    sort_by: str | None = None
    sort_order: SortOrder | None = None
    search: str | None = None
    is_active: bool | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = PydanticField(serialization_alias="totalPages")


class PaginatedResult(BaseModel, Generic[DataT]):
    data: list[DataT]
    pagination: Pagination


# ── Health / statistics ──────────────────────────────────────

class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthChecks(BaseModel):
    database: bool = False
    table: bool = False
    records: bool = False


class HealthMetrics(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    last_updated: datetime | None = PydanticField(default=None, serialization_alias="lastUpdated")


class HealthResult(BaseModel):
    status: HealthStatus
    checks: HealthChecks
    metrics: HealthMetrics
    timestamp: datetime


class StatisticsOverview(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0


class StatisticsResult(BaseModel):
    overview: StatisticsOverview


class CodeAvailability(BaseModel):
    available: bool
    reasons: list[str] = []
    suggestions: list[str] = []


class CodeNamePair(BaseModel):
    code: str
    name: str


