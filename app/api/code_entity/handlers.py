"""Request handling for coded entities.

Turns ``ServiceResult`` envelopes into HTTP status codes and the wire
envelope ``{success, data?, message?, error?, pagination?}``. Identity, role
and path checks have already run as dependencies by the time a handler is
called.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.models.code_entity import (
    CodedEntityCreate,
    CodedEntityUpdate,
    HealthStatus,
    Pagination,
    QueryOptions,
)
from app.services.code_entity.result import ErrorKind, ServiceResult
from app.services.code_entity.service import CodeEntityService

HEALTH_STATUS_CODES = {
    HealthStatus.HEALTHY: status.HTTP_200_OK,
    HealthStatus.DEGRADED: status.HTTP_206_PARTIAL_CONTENT,
    HealthStatus.UNHEALTHY: status.HTTP_503_SERVICE_UNAVAILABLE,
}

BOOLEAN_QUERY_VALUES = {"true": True, "1": True, "false": False, "0": False}

# Query-string key -> QueryOptions field, for the four date bounds.
DATE_QUERY_KEYS = {
    "createdAfter": "created_after",
    "createdBefore": "created_before",
    "updatedAfter": "updated_after",
    "updatedBefore": "updated_before",
}


class QueryParamError(ValueError):
    """A query-string value could not be coerced to its option type."""


# ── Query parsing ────────────────────────────────────────────

def parse_query_options(params: Mapping[str, str]) -> QueryOptions:
    """Coerce list query parameters into ``QueryOptions``.

    Defaults and limit clamping are left to the service.
    """
    values: dict[str, Any] = {
        "page": _parse_int(params, "page"),
        "limit": _parse_int(params, "limit"),
        "sort_by": params.get("sortBy") or None,
        # Strict match: anything but DESC sorts ascending.
        "sort_order": "DESC" if params.get("sortOrder") == "DESC" else "ASC",
        "search": params.get("search") or None,
    }

    raw_active = params.get("isActive")
    if raw_active is not None and raw_active != "":
        try:
            values["is_active"] = BOOLEAN_QUERY_VALUES[raw_active.strip().lower()]
        except KeyError:
            raise QueryParamError("isActive must be one of: true, false, 1, 0") from None

    for key, field_name in DATE_QUERY_KEYS.items():
        values[field_name] = _parse_datetime(params, key)

    return QueryOptions(**values)


def _parse_int(params: Mapping[str, str], key: str) -> int | None:
    raw = params.get(key)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise QueryParamError(f"{key} must be an integer") from None


def _parse_datetime(params: Mapping[str, str], key: str) -> datetime | None:
    raw = params.get(key)
    if raw is None or raw == "":
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise QueryParamError(f"{key} must be an ISO 8601 date") from None
    # Timestamps are stored as naive UTC.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ── Response shaping ─────────────────────────────────────────

def respond(
    status_code: int,
    *,
    data: Any = None,
    message: str | None = None,
    error: str | None = None,
    pagination: Pagination | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": error is None}
    if data is not None:
        content["data"] = jsonable_encoder(data)
    if message is not None:
        content["message"] = message
    if error is not None:
        content["error"] = error
    if pagination is not None:
        content["pagination"] = jsonable_encoder(pagination)
    return JSONResponse(status_code=status_code, content=content)


def failure_status(result: ServiceResult) -> int:
    """400 for failures caused by caller input, 500 for storage faults."""
    if result.kind == ErrorKind.STORAGE:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


# ── Controller ───────────────────────────────────────────────

class CodeEntityController:
    """One handler per generic operation, bound to a service."""

    def __init__(self, service: CodeEntityService) -> None:
        self.service = service
        self.entity_name = service.entity_name

    async def create(self, body: CodedEntityCreate, actor_id: int) -> JSONResponse:
        result = await self.service.create(body, actor_id)
        if not result.success:
            return respond(status.HTTP_400_BAD_REQUEST, error=result.error)
        return respond(
            status.HTTP_201_CREATED,
            data=result.data,
            message=f"{self.entity_name} created successfully",
        )

    async def get_by_code(self, code: str) -> JSONResponse:
        result = await self.service.get_by_code(code)
        if not result.success:
            return respond(status.HTTP_404_NOT_FOUND, error=result.error)
        return respond(status.HTTP_200_OK, data=result.data)

    async def get_all(self, options: QueryOptions) -> JSONResponse:
        result = await self.service.get_all(options)
        if not result.success:
            return respond(status.HTTP_500_INTERNAL_SERVER_ERROR, error=result.error)
        page = result.data
        return respond(
            status.HTTP_200_OK,
            data=page.data,
            message=f"Retrieved {len(page.data)} {self.entity_name} records",
            pagination=page.pagination,
        )

    async def update(self, code: str, body: CodedEntityUpdate, actor_id: int) -> JSONResponse:
        changes = body.model_dump(exclude_unset=True)
        if "name" not in changes and "is_active" not in changes:
            return respond(
                status.HTTP_400_BAD_REQUEST,
                error="At least one field (name or is_active) must be provided for update",
            )
        result = await self.service.update(code, changes, actor_id)
        if not result.success:
            return respond(status.HTTP_400_BAD_REQUEST, error=result.error)
        return respond(
            status.HTTP_200_OK,
            data=result.data,
            message=f"{self.entity_name} updated successfully",
        )

    async def delete(self, code: str) -> JSONResponse:
        result = await self.service.delete(code)
        if not result.success:
            return respond(status.HTTP_400_BAD_REQUEST, error=result.error)
        return respond(
            status.HTTP_200_OK,
            data=True,
            message=f"{self.entity_name} deleted successfully",
        )

    async def change_status(self, code: str, actor_id: int) -> JSONResponse:
        result = await self.service.change_status(code, actor_id)
        if not result.success:
            return respond(status.HTTP_400_BAD_REQUEST, error=result.error)
        return respond(
            status.HTTP_200_OK,
            data=True,
            message=f"{self.entity_name} status changed successfully",
        )

    async def health(self) -> JSONResponse:
        result = await self.service.get_health()
        if not result.success:
            return respond(status.HTTP_500_INTERNAL_SERVER_ERROR, error=result.error)
        return respond(
            HEALTH_STATUS_CODES[result.data.status],
            data=result.data,
            message=f"{self.entity_name} health status retrieved successfully",
        )

    async def statistics(self) -> JSONResponse:
        result = await self.service.get_statistics()
        if not result.success:
            return respond(status.HTTP_500_INTERNAL_SERVER_ERROR, error=result.error)
        return respond(
            status.HTTP_200_OK,
            data=result.data,
            message=f"{self.entity_name} statistics retrieved successfully",
        )

    async def get_by_name(self, name: str, options: QueryOptions) -> JSONResponse:
        result = await self.service.get_by_name(name, options)
        if not result.success:
            return respond(failure_status(result), error=result.error)
        page = result.data
        return respond(
            status.HTTP_200_OK,
            data=page.data,
            message=f"Found {len(page.data)} {self.entity_name} records matching name '{name}'",
            pagination=page.pagination,
        )

    async def filter_status(self, active: bool, options: QueryOptions) -> JSONResponse:
        result = await self.service.filter_status(active, options)
        if not result.success:
            return respond(failure_status(result), error=result.error)
        page = result.data
        label = "active" if active else "inactive"
        return respond(
            status.HTTP_200_OK,
            data=page.data,
            message=f"Found {len(page.data)} {label} {self.entity_name} records",
            pagination=page.pagination,
        )

    async def search(self, pattern: str, options: QueryOptions) -> JSONResponse:
        result = await self.service.search(pattern, options)
        if not result.success:
            return respond(failure_status(result), error=result.error)
        page = result.data
        return respond(
            status.HTTP_200_OK,
            data=page.data,
            message=(
                f"Found {len(page.data)} {self.entity_name} records "
                f"matching pattern '{pattern}' in code or name"
            ),
            pagination=page.pagination,
        )

    async def check_code(self, code: str | None) -> JSONResponse:
        result = await self.service.check_code_availability(code)
        if not result.success:
            return respond(failure_status(result), error=result.error)
        availability = result.data
        message = "Code is available" if availability.available else "Code is not available"
        return respond(status.HTTP_200_OK, data=availability, message=message)

    async def lookup_prefix(self, prefix: str, limit: int) -> JSONResponse:
        result = await self.service.find_by_code_prefix(prefix, limit)
        if not result.success:
            return respond(failure_status(result), error=result.error)
        return respond(
            status.HTTP_200_OK,
            data=result.data,
            message=f"Found {len(result.data)} {self.entity_name} records with code prefix '{prefix}'",
        )
