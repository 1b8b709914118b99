"""Business layer for coded entities.

Decides whether an operation is legal before it reaches storage and turns
storage faults into ``ServiceResult`` failures. Only faults outside the
``DataAccessError`` vocabulary propagate as exceptions.
"""

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Generic, Literal

from pydantic import BaseModel

from app.core.errors import DataAccessError, DuplicateCodeError, EntityNotFoundError, failure_message
from app.models.code_entity import (
    NAME_MAX_LENGTH,
    CodeAvailability,
    CodeNamePair,
    CodedEntityCreate,
    EntityT,
    HealthResult,
    PaginatedResult,
    QueryOptions,
    StatisticsResult,
)
from app.services.code_entity.repository import CodeEntityRepository
from app.services.code_entity.result import ErrorKind, ServiceResult, ValidationResult

logger = logging.getLogger(__name__)

Operation = Literal["create", "update"]
ValidationRule = Callable[[Mapping[str, Any], Operation], list[str]]

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$", re.IGNORECASE)
PARAM_MAX_LENGTH = 255
PREFIX_LIMIT_MAX = 50


class CodeEntityService(Generic[EntityT]):
    """Generic business rules for one coded entity.

    ``extra_rules`` are entity-specific validators. Their messages are appended
    after the generic ones, so a rule can only add violations, never lift one.
    """

    def __init__(
        self,
        repository: CodeEntityRepository[EntityT],
        extra_rules: Sequence[ValidationRule] = (),
        normalize_code: Callable[[str], str] | None = None,
    ) -> None:
        self.repository = repository
        self.config = repository.config
        self.extra_rules = tuple(extra_rules)
        self.normalize_code = normalize_code

    @property
    def entity_name(self) -> str:
        return self.config.entity_name

    # ── CRUD ─────────────────────────────────────────────────

    async def get_by_code(self, code: str) -> ServiceResult[EntityT]:
        code = self._normalized(code)
        # Malformed and missing codes are both reported as "not found".
        if not self.is_valid_code(code):
            return ServiceResult.fail(f"{self.entity_name} not found", ErrorKind.NOT_FOUND)
        try:
            entity = await self.repository.get_by_code(code)
        except DataAccessError as exc:
            return _storage_failure(f"get {self.entity_name}", exc)
        if entity is None:
            return ServiceResult.fail(f"{self.entity_name} not found", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(entity)

    async def get_all(self, options: QueryOptions) -> ServiceResult[PaginatedResult]:
        try:
            page = await self.repository.get_all(self.apply_default_options(options))
        except DataAccessError as exc:
            return _storage_failure(f"get {self.entity_name} list", exc)
        return ServiceResult.ok(page)

    async def create(
        self, data: CodedEntityCreate | Mapping[str, Any], actor_id: int
    ) -> ServiceResult[EntityT]:
        payload = _as_payload(data)
        if isinstance(payload.get("code"), str):
            payload["code"] = self._normalized(payload["code"])
        validation = self.validate(payload, "create")
        if not validation.is_valid:
            return ServiceResult.fail(", ".join(validation.errors))

        code = payload["code"]
        duplicate = f"{self.entity_name} with code '{code}' already exists"
        try:
            # Friendly pre-check; the primary key still guards concurrent creates.
            if await self.repository.exists(code):
                return ServiceResult.fail(duplicate, ErrorKind.CONFLICT)
            entity = await self.repository.create(CodedEntityCreate(**payload), actor_id)
        except DuplicateCodeError:
            logger.info("Lost create race for %s %s", self.entity_name, code)
            return ServiceResult.fail(duplicate, ErrorKind.CONFLICT)
        except DataAccessError as exc:
            return _storage_failure(f"create {self.entity_name}", exc)
        return ServiceResult.ok(entity)

    async def update(
        self, code: str, data: BaseModel | Mapping[str, Any], actor_id: int
    ) -> ServiceResult[EntityT]:
        code = self._normalized(code)
        if not self.is_valid_code(code):
            return ServiceResult.fail("Invalid code provided")

        payload = _as_payload(data)
        validation = self.validate(payload, "update")
        if not validation.is_valid:
            return ServiceResult.fail(", ".join(validation.errors))

        try:
            if not await self.repository.exists(code):
                return ServiceResult.fail(f"{self.entity_name} not found", ErrorKind.NOT_FOUND)
            entity = await self.repository.update(code, payload, actor_id)
        except EntityNotFoundError:
            return ServiceResult.fail(f"{self.entity_name} not found", ErrorKind.NOT_FOUND)
        except DataAccessError as exc:
            return _storage_failure(f"update {self.entity_name}", exc)
        return ServiceResult.ok(entity)

    async def delete(self, code: str) -> ServiceResult[bool]:
        code = self._normalized(code)
        if not self.is_valid_code(code):
            return ServiceResult.fail("Invalid code provided")
        try:
            deleted = await self.repository.delete(code)
        except DataAccessError as exc:
            return _storage_failure(f"delete {self.entity_name}", exc)
        if not deleted:
            return ServiceResult.fail(f"{self.entity_name} not found or already inactive", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(True)

    async def change_status(self, code: str, actor_id: int) -> ServiceResult[bool]:
        code = self._normalized(code)
        if not self.is_valid_code(code):
            return ServiceResult.fail("Invalid code provided")
        try:
            changed = await self.repository.change_status(code, actor_id)
        except DataAccessError as exc:
            return _storage_failure(f"change {self.entity_name} status", exc)
        if not changed:
            return ServiceResult.fail(f"{self.entity_name} not found or already inactive", ErrorKind.NOT_FOUND)
        return ServiceResult.ok(True)

    # ── Diagnostics ──────────────────────────────────────────

    async def get_health(self) -> ServiceResult[HealthResult]:
        return ServiceResult.ok(await self.repository.health())

    async def get_statistics(self) -> ServiceResult[StatisticsResult]:
        try:
            stats = await self.repository.statistics()
        except DataAccessError as exc:
            return _storage_failure(f"get {self.entity_name} statistics", exc)
        return ServiceResult.ok(stats)

    # ── Specialised queries ──────────────────────────────────

    async def get_by_name(self, name: str, options: QueryOptions) -> ServiceResult[PaginatedResult]:
        problem = _param_problem("Name", name)
        if problem:
            return ServiceResult.fail(problem)
        try:
            page = await self.repository.get_by_name(name.strip(), self.apply_default_options(options))
        except DataAccessError as exc:
            return _storage_failure(f"search {self.entity_name} by name", exc)
        return ServiceResult.ok(page)

    async def filter_status(self, status: bool, options: QueryOptions) -> ServiceResult[PaginatedResult]:
        try:
            page = await self.repository.filter_status(status, self.apply_default_options(options))
        except DataAccessError as exc:
            return _storage_failure(f"filter {self.entity_name} by status", exc)
        return ServiceResult.ok(page)

    async def search(self, pattern: str, options: QueryOptions) -> ServiceResult[PaginatedResult]:
        problem = _param_problem("Pattern", pattern)
        if problem:
            return ServiceResult.fail(problem)
        try:
            page = await self.repository.search(pattern.strip(), self.apply_default_options(options))
        except DataAccessError as exc:
            return _storage_failure(f"search {self.entity_name} by pattern", exc)
        return ServiceResult.ok(page)

    async def check_code_availability(self, code: str | None) -> ServiceResult[CodeAvailability]:
        """Whether ``code`` could be used for a new entity.

        A malformed or taken code is still a successful check.
        """
        if not code or not code.strip():
            return ServiceResult.ok(CodeAvailability(available=False, reasons=["Code cannot be empty"]))

        candidate = self._normalized(code.strip())
        reasons = self.code_errors(candidate)
        if reasons:
            return ServiceResult.ok(CodeAvailability(available=False, reasons=reasons))

        try:
            taken = await self.repository.exists(candidate)
            suggestions = await self.repository.find_similar_codes(candidate) if taken else []
        except DataAccessError as exc:
            return _storage_failure("check code availability", exc)

        return ServiceResult.ok(
            CodeAvailability(
                available=not taken,
                reasons=["Code is already in use"] if taken else [],
                suggestions=suggestions,
            )
        )

    async def find_by_code_prefix(self, prefix: str, limit: int = 10) -> ServiceResult[list[CodeNamePair]]:
        if not prefix or not prefix.strip():
            return ServiceResult.fail("Code prefix cannot be empty")
        if limit < 1 or limit > PREFIX_LIMIT_MAX:
            return ServiceResult.fail(f"Limit must be between 1 and {PREFIX_LIMIT_MAX}")
        try:
            matches = await self.repository.find_by_code_prefix(prefix.strip().upper(), limit)
        except DataAccessError as exc:
            return _storage_failure(f"search {self.entity_name} by code prefix", exc)
        return ServiceResult.ok(matches)

    # ── Validation ───────────────────────────────────────────

    def validate(self, data: Mapping[str, Any], operation: Operation) -> ValidationResult:
        errors = self._generic_errors(data, operation)
        for rule in self.extra_rules:
            errors.extend(rule(data, operation))
        return ValidationResult(errors=errors)

    def _generic_errors(self, data: Mapping[str, Any], operation: Operation) -> list[str]:
        errors: list[str] = []

        if operation == "create":
            code = data.get("code")
            if not code or not isinstance(code, str):
                errors.append("Code is required and must be a string")
            else:
                errors.extend(self._code_format_errors(code))

            name = data.get("name")
            if not name or not isinstance(name, str):
                errors.append("Name is required and must be a string")
            elif not name.strip() or len(name) > NAME_MAX_LENGTH:
                errors.append(f"Name must be 1-{NAME_MAX_LENGTH} characters long")
        elif "name" in data:
            name = data["name"]
            if not isinstance(name, str):
                errors.append("Name must be a string")
            elif not name.strip() or len(name) > NAME_MAX_LENGTH:
                errors.append(f"Name must be 1-{NAME_MAX_LENGTH} characters long")

        if "is_active" in data and not isinstance(data["is_active"], bool):
            errors.append("is_active must be a boolean value")

        return errors

    def _code_format_errors(self, code: str) -> list[str]:
        errors = []
        if not code or len(code) > self.config.code_length:
            errors.append(f"Code must be 1-{self.config.code_length} characters long")
        if not CODE_PATTERN.match(code):
            errors.append("Code can only contain letters, numbers, underscores, and hyphens")
        return errors

    def code_errors(self, code: str) -> list[str]:
        """Generic plus entity-specific rule violations for a candidate code."""
        errors = self._code_format_errors(code)
        for rule in self.extra_rules:
            errors.extend(rule({"code": code}, "create"))
        return errors

    def is_valid_code(self, code: str | None) -> bool:
        if not code or not isinstance(code, str):
            return False
        if len(code) > self.config.code_length:
            return False
        return bool(CODE_PATTERN.match(code))

    # ── Helpers ──────────────────────────────────────────────

    def _normalized(self, code: str) -> str:
        if self.normalize_code is None or not isinstance(code, str):
            return code
        return self.normalize_code(code)

    def apply_default_options(self, options: QueryOptions | None) -> QueryOptions:
        """Fill defaults and clamp ``limit``; the only place limits are clamped."""
        options = options or QueryOptions()
        requested = options.limit if options.limit and options.limit > 0 else self.config.default_limit
        return options.model_copy(
            update={
                "page": options.page if options.page and options.page >= 1 else 1,
                "limit": min(requested, self.config.max_limit),
                "sort_by": options.sort_by or "code",
                "sort_order": options.sort_order or "ASC",
                "search": options.search.strip() if options.search else None,
            }
        )


def _as_payload(data: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    return dict(data)


def _storage_failure(action: str, exc: DataAccessError) -> ServiceResult:
    return ServiceResult.fail(failure_message(action, exc.detail), ErrorKind.STORAGE)


def _param_problem(label: str, value: str | None) -> str | None:
    if not value or not value.strip():
        return f"{label} parameter is required"
    if len(value) > PARAM_MAX_LENGTH:
        return f"{label} parameter is too long (max {PARAM_MAX_LENGTH} characters)"
    return None
