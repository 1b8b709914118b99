"""Data-access layer for coded entities.

The only place that builds or executes SQL for a coded entity. Table and
column names come from trusted configuration; every caller-supplied value
travels as a bound parameter. ``sort_by`` cannot be bound, so it is checked
against an allow-list instead.
"""

import asyncio
import logging
import math
import re
from collections.abc import Mapping
from typing import Any, Generic

from sqlalchemy import (
    String,
    case,
    cast,
    delete,
    func,
    insert,
    inspect,
    literal,
    not_,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.elements import ColumnElement

from app.core.errors import (
    DataAccessError,
    DuplicateCodeError,
    EntityNotFoundError,
    failure_message,
)
from app.models.base import utcnow
from app.models.code_entity import (
    CodeNamePair,
    CodedEntityCreate,
    EntityT,
    HealthChecks,
    HealthMetrics,
    HealthResult,
    HealthStatus,
    PaginatedResult,
    Pagination,
    QueryOptions,
    StatisticsOverview,
    StatisticsResult,
)
from app.services.code_entity.config import EntityConfig, validate_entity_config

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "is_active")
LIKE_ESCAPE = "\\"
SIMILAR_CODES_LIMIT = 5

_LIKE_SPECIAL = re.compile(r"([%_\\])")

# Storage faults: driver/SQL errors and raw socket failures from the pool.
STORAGE_FAULTS = (SQLAlchemyError, OSError)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` only matches literally."""
    return _LIKE_SPECIAL.sub(r"\\\1", term)


def describe_fault(exc: BaseException) -> str:
    """Driver message without the SQL text SQLAlchemy appends."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        detail = str(exc.orig).strip()
        return detail.splitlines()[0] if detail else type(exc.orig).__name__
    return str(exc) or type(exc).__name__


class CodeEntityRepository(Generic[EntityT]):
    """Query / command operations over one coded-entity table."""

    def __init__(self, engine: AsyncEngine, model: type[EntityT], config: EntityConfig) -> None:
        problems = validate_entity_config(config)
        if problems:
            raise ValueError(f"Invalid config for {config.entity_name!r}: {', '.join(problems)}")

        table = model.__table__  # type: ignore[attr-defined]
        if table.name != config.table_name:
            raise ValueError(
                f"Model {model.__name__} maps {table.name!r}, config expects {config.table_name!r}"
            )
        unknown = [f for f in config.searchable_fields if f not in table.c]
        if unknown:
            raise ValueError(f"Searchable fields not on {table.name!r}: {', '.join(unknown)}")

        self.engine = engine
        self.model = model
        self.config = config
        self.table = table

    # ── Reads ────────────────────────────────────────────────

    async def get_by_code(self, code: str) -> EntityT | None:
        stmt = select(self.table).where(self.table.c.code == code).limit(1)
        try:
            rows = await self._fetch_rows(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault(f"find {self.config.entity_name} by code", exc) from exc
        return self._to_entity(rows[0]) if rows else None

    async def get_all(self, options: QueryOptions | None = None) -> PaginatedResult:
        options = options or QueryOptions()
        return await self._fetch_page(
            self.build_filters(options), options, f"find {self.config.entity_name} list"
        )

    async def get_by_name(self, name: str, options: QueryOptions | None = None) -> PaginatedResult:
        options = options or QueryOptions()
        conditions = [func.lower(self.table.c.name) == func.lower(name)]
        return await self._fetch_page(
            conditions, options, f"search {self.config.entity_name} by name"
        )

    async def filter_status(self, status: bool, options: QueryOptions | None = None) -> PaginatedResult:
        options = (options or QueryOptions()).model_copy(update={"is_active": status})
        return await self._fetch_page(
            self.build_filters(options), options, f"filter {self.config.entity_name} by status"
        )

    async def search(self, pattern: str, options: QueryOptions | None = None) -> PaginatedResult:
        """Substring match on code OR name, independent of searchable fields."""
        options = options or QueryOptions()
        conditions = [self._like_any(("code", "name"), pattern)]
        return await self._fetch_page(
            conditions, options, f"search {self.config.entity_name} by pattern"
        )

    async def count(self, options: QueryOptions | None = None) -> int:
        stmt = self._count_stmt(self.build_filters(options or QueryOptions()))
        try:
            return await self._fetch_scalar(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault(f"count {self.config.entity_name}", exc) from exc

    async def exists(self, code: str) -> bool:
        stmt = select(literal(1)).select_from(self.table).where(self.table.c.code == code).limit(1)
        try:
            rows = await self._fetch_rows(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault(f"check {self.config.entity_name} existence", exc) from exc
        return bool(rows)

    async def find_similar_codes(self, code: str, limit: int = SIMILAR_CODES_LIMIT) -> list[str]:
        column = self.table.c.code
        stmt = (
            select(column)
            .where(self._like_any(("code",), code), column != code)
            .order_by(column.asc())
            .limit(limit)
        )
        try:
            rows = await self._fetch_rows(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault("find similar codes", exc) from exc
        return [row.code for row in rows]

    async def find_by_code_prefix(self, prefix: str, limit: int = 10) -> list[CodeNamePair]:
        column = self.table.c.code
        stmt = (
            select(column, self.table.c.name)
            .where(
                cast(column, String).ilike(f"{escape_like(prefix)}%", escape=LIKE_ESCAPE),
                self.table.c.is_active.is_(True),
            )
            .order_by(column.asc())
            .limit(limit)
        )
        try:
            rows = await self._fetch_rows(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault(f"find {self.config.entity_name} by code prefix", exc) from exc
        return [CodeNamePair(code=row.code, name=row.name) for row in rows]

    # ── Writes ───────────────────────────────────────────────

    async def create(self, data: CodedEntityCreate, actor_id: int) -> EntityT:
        now = utcnow()
        values = {
            "code": data.code,
            "name": data.name,
            "is_active": True if data.is_active is None else data.is_active,
            "created_by": actor_id,
            "updated_by": actor_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            async with self.engine.begin() as conn:
                await conn.execute(insert(self.table).values(**values))
                row = (await conn.execute(self._by_code_stmt(data.code))).one()
        except IntegrityError as exc:
            message = failure_message(f"create {self.config.entity_name}", describe_fault(exc))
            logger.warning(message)
            if await self._code_taken(data.code):
                raise DuplicateCodeError(message, data.code) from exc
            raise DataAccessError(message, describe_fault(exc)) from exc
        except STORAGE_FAULTS as exc:
            raise self._fault(f"create {self.config.entity_name}", exc) from exc
        return self._to_entity(row)

    async def update(self, code: str, data: Mapping[str, Any], actor_id: int) -> EntityT:
        """Partial merge: only keys present in ``data`` reach the SET clause."""
        values = {key: data[key] for key in UPDATABLE_FIELDS if key in data}
        values["updated_by"] = actor_id
        values["updated_at"] = utcnow()

        stmt = update(self.table).where(self.table.c.code == code).values(**values)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                if result.rowcount == 0:
                    raise EntityNotFoundError(
                        failure_message(
                            f"update {self.config.entity_name}",
                            f"{self.config.entity_name} not found",
                        )
                    )
                row = (await conn.execute(self._by_code_stmt(code))).one()
        except STORAGE_FAULTS as exc:
            raise self._fault(f"update {self.config.entity_name}", exc) from exc
        return self._to_entity(row)

    async def delete(self, code: str) -> bool:
        """Hard delete: the row is removed."""
        stmt = delete(self.table).where(self.table.c.code == code)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault(f"delete {self.config.entity_name}", exc) from exc
        return result.rowcount > 0

    async def change_status(self, code: str, actor_id: int) -> bool:
        """Flip ``is_active`` in one statement, no read-modify-write."""
        stmt = (
            update(self.table)
            .where(self.table.c.code == code)
            .values(
                is_active=not_(self.table.c.is_active),
                updated_by=actor_id,
                updated_at=utcnow(),
            )
        )
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
        except STORAGE_FAULTS as exc:
            raise self._fault(f"change {self.config.entity_name} status", exc) from exc
        return result.rowcount > 0

    # ── Diagnostics ──────────────────────────────────────────

    async def health(self) -> HealthResult:
        """Connectivity, table and metrics probe. Never raises."""
        checks = HealthChecks()
        metrics = HealthMetrics()
        table_name = self.config.table_name

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                checks.database = True

                checks.table = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).has_table(table_name)
                )
                if checks.table:
                    try:
                        row = (await conn.execute(self._aggregate_stmt(with_last_updated=True))).one()
                    except SQLAlchemyError as exc:
                        logger.warning(
                            "Health metrics for %s failed: %s", table_name, describe_fault(exc)
                        )
                    else:
                        metrics = HealthMetrics(
                            total=row.total or 0,
                            active=row.active or 0,
                            inactive=row.inactive or 0,
                            last_updated=row.last_updated,
                        )
                        checks.records = True
        except Exception as exc:  # noqa: BLE001 - the probe reports, it does not raise
            logger.warning("Health probe for %s failed: %s", table_name, describe_fault(exc))
            return HealthResult(
                status=HealthStatus.UNHEALTHY, checks=checks, metrics=metrics, timestamp=utcnow()
            )

        if checks.database and checks.table and checks.records:
            status = HealthStatus.HEALTHY
        elif checks.database and checks.table:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.UNHEALTHY
        return HealthResult(status=status, checks=checks, metrics=metrics, timestamp=utcnow())

    async def statistics(self) -> StatisticsResult:
        try:
            rows = await self._fetch_rows(self._aggregate_stmt(with_last_updated=False))
        except STORAGE_FAULTS as exc:
            raise self._fault(f"get {self.config.entity_name} statistics", exc) from exc
        row = rows[0]
        return StatisticsResult(
            overview=StatisticsOverview(
                total=row.total or 0,
                active=row.active or 0,
                inactive=row.inactive or 0,
            )
        )

    # ── Query building ───────────────────────────────────────

    def build_filters(self, options: QueryOptions) -> list[ColumnElement[bool]]:
        """WHERE predicates shared by list, count and status filtering."""
        c = self.table.c
        conditions: list[ColumnElement[bool]] = []

        if options.is_active is not None:
            conditions.append(c.is_active == options.is_active)

        search = (options.search or "").strip()
        if search:
            conditions.append(self._like_any(self.config.searchable_fields, search))

        if options.created_after is not None:
            conditions.append(c.created_at >= options.created_after)
        if options.created_before is not None:
            conditions.append(c.created_at <= options.created_before)
        if options.updated_after is not None:
            conditions.append(c.updated_at >= options.updated_after)
        if options.updated_before is not None:
            conditions.append(c.updated_at <= options.updated_before)

        return conditions

    def validate_sort_field(self, sort_by: str | None) -> str:
        """Return ``sort_by`` if allow-listed, else ``code``."""
        if sort_by in self.config.sort_fields:
            return sort_by
        return "code"

    def _like_any(self, fields, term: str) -> ColumnElement[bool]:
        pattern = f"%{escape_like(term)}%"
        return or_(
            *(cast(self.table.c[name], String).ilike(pattern, escape=LIKE_ESCAPE) for name in fields)
        )

    def _order_by(self, options: QueryOptions):
        column = self.table.c[self.validate_sort_field(options.sort_by)]
        if (options.sort_order or "ASC").upper() == "DESC":
            return column.desc()
        return column.asc()

    def _count_stmt(self, conditions):
        return select(func.count()).select_from(self.table).where(*conditions)

    def _by_code_stmt(self, code: str):
        return select(self.table).where(self.table.c.code == code)

    def _aggregate_stmt(self, with_last_updated: bool):
        c = self.table.c
        columns = [
            func.count().label("total"),
            func.coalesce(func.sum(case((c.is_active.is_(True), 1), else_=0)), 0).label("active"),
            func.coalesce(func.sum(case((c.is_active.is_(False), 1), else_=0)), 0).label("inactive"),
        ]
        if with_last_updated:
            columns.append(func.max(c.updated_at).label("last_updated"))
        return select(*columns).select_from(self.table)

    async def _fetch_page(self, conditions, options: QueryOptions, action: str) -> PaginatedResult:
        # Trusts its input: page/limit are already defaulted and clamped upstream.
        page = options.page or 1
        limit = options.limit or self.config.default_limit
        offset = (page - 1) * limit

        data_stmt = (
            select(self.table)
            .where(*conditions)
            .order_by(self._order_by(options))
            .limit(limit)
            .offset(offset)
        )
        count_stmt = self._count_stmt(conditions)

        # Two pooled connections, no shared snapshot: ``total`` may drift
        # from the page under concurrent writes.
        try:
            rows, total = await asyncio.gather(
                self._fetch_rows(data_stmt),
                self._fetch_scalar(count_stmt),
            )
        except STORAGE_FAULTS as exc:
            raise self._fault(action, exc) from exc

        return PaginatedResult(
            data=[self._to_entity(row) for row in rows],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )

    # ── Execution helpers ────────────────────────────────────

    async def _fetch_rows(self, stmt) -> list:
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return list(result.all())

    async def _fetch_scalar(self, stmt) -> int:
        async with self.engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())

    async def _code_taken(self, code: str) -> bool:
        try:
            return await self.exists(code)
        except DataAccessError:
            return False

    def _to_entity(self, row) -> EntityT:
        return self.model(**dict(row._mapping))

    def _fault(self, action: str, exc: BaseException) -> DataAccessError:
        message = failure_message(action, describe_fault(exc))
        logger.warning(message)
        return DataAccessError(message, describe_fault(exc))
