"""Route wiring and the factory that assembles a coded entity end to end."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from app.api.code_entity.handlers import CodeEntityController, QueryParamError, parse_query_options
from app.api.deps import AuthContext, CodePath, NamePath, PatternPath, StatusPath, require_role
from app.core.database import get_engine
from app.core.security import UserRole
from app.models.code_entity import (
    CodeCheckRequest,
    CodedEntityCreate,
    CodedEntityUpdate,
    EntityT,
    QueryOptions,
)
from app.services.code_entity.config import EntityConfig, validate_entity_config
from app.services.code_entity.repository import CodeEntityRepository
from app.services.code_entity.service import (
    PREFIX_LIMIT_MAX,
    CodeEntityService,
    ValidationRule,
)

ServiceProvider = Callable[..., CodeEntityService]


@dataclass(frozen=True)
class CodeEntityRoles:
    """Minimum caller role per operation."""

    health: UserRole = UserRole.MANAGER
    statistics: UserRole = UserRole.MANAGER
    read: UserRole = UserRole.USER
    create: UserRole = UserRole.MANAGER
    update: UserRole = UserRole.MANAGER
    change_status: UserRole = UserRole.MANAGER
    delete: UserRole = UserRole.ADMIN
    check_code: UserRole = UserRole.MANAGER


def query_options(request: Request) -> QueryOptions:
    try:
        return parse_query_options(request.query_params)
    except QueryParamError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc


Options = Annotated[QueryOptions, Depends(query_options)]


def create_code_entity_router(
    config: EntityConfig,
    get_service: ServiceProvider,
    roles: CodeEntityRoles | None = None,
    *,
    check_code: bool = False,
    prefix_lookup: bool = False,
) -> APIRouter:
    """Mount every operation of one coded entity under ``config.api_path``.

    Registration order matters: literal sub-paths (``/health``,
    ``/statistics``, ``/search/...``, ``/filter/...``) must be registered
    before ``/{code}`` or the wildcard would capture them.
    """
    roles = roles or CodeEntityRoles()
    router = APIRouter(prefix=config.api_path, tags=[config.entity_name])

    def get_controller(
        service: Annotated[CodeEntityService, Depends(get_service)],
    ) -> CodeEntityController:
        return CodeEntityController(service)

    Controller = Annotated[CodeEntityController, Depends(get_controller)]

    def caller(minimum: UserRole):
        return Annotated[AuthContext, Depends(require_role(minimum))]

    # ── Entity-specific literal paths ────────────────────────

    if check_code:

        @router.post("/check-code")
        async def check_code_availability(
            body: CodeCheckRequest,
            controller: Controller,
            _auth: caller(roles.check_code),
        ) -> JSONResponse:
            return await controller.check_code(body.code)

    if prefix_lookup:

        @router.get("/lookup/prefix/{prefix}")
        async def lookup_by_code_prefix(
            prefix: str,
            controller: Controller,
            _auth: caller(roles.read),
            limit: Annotated[int, Query(ge=1, le=PREFIX_LIMIT_MAX)] = 10,
        ) -> JSONResponse:
            return await controller.lookup_prefix(prefix, limit)

    # ── Analytics ────────────────────────────────────────────

    @router.get("/health")
    async def health(controller: Controller, _auth: caller(roles.health)) -> JSONResponse:
        return await controller.health()

    @router.get("/statistics")
    async def statistics(controller: Controller, _auth: caller(roles.statistics)) -> JSONResponse:
        return await controller.statistics()

    # ── Search / filter ──────────────────────────────────────

    @router.get("/search/name/{name}")
    async def search_by_name(
        name: NamePath,
        options: Options,
        controller: Controller,
        _auth: caller(roles.read),
    ) -> JSONResponse:
        return await controller.get_by_name(name, options)

    @router.get("/search/pattern/{pattern}")
    async def search_by_pattern(
        pattern: PatternPath,
        options: Options,
        controller: Controller,
        _auth: caller(roles.read),
    ) -> JSONResponse:
        return await controller.search(pattern, options)

    @router.get("/filter/status/{status_value}")
    async def filter_by_status(
        active: StatusPath,
        options: Options,
        controller: Controller,
        _auth: caller(roles.read),
    ) -> JSONResponse:
        return await controller.filter_status(active, options)

    # ── Collection ───────────────────────────────────────────

    @router.post("")
    async def create_entity(
        body: CodedEntityCreate,
        controller: Controller,
        auth: caller(roles.create),
    ) -> JSONResponse:
        return await controller.create(body, auth.user_id)

    @router.get("")
    async def list_entities(
        options: Options,
        controller: Controller,
        _auth: caller(roles.read),
    ) -> JSONResponse:
        return await controller.get_all(options)

    # ── Single entity ────────────────────────────────────────

    @router.get("/{code}")
    async def get_entity(
        code: CodePath,
        controller: Controller,
        _auth: caller(roles.read),
    ) -> JSONResponse:
        return await controller.get_by_code(code)

    @router.put("/{code}")
    async def update_entity(
        code: CodePath,
        body: CodedEntityUpdate,
        controller: Controller,
        auth: caller(roles.update),
    ) -> JSONResponse:
        return await controller.update(code, body, auth.user_id)

    @router.patch("/{code}/status")
    async def change_entity_status(
        code: CodePath,
        controller: Controller,
        auth: caller(roles.change_status),
    ) -> JSONResponse:
        return await controller.change_status(code, auth.user_id)

    @router.delete("/{code}")
    async def delete_entity(
        code: CodePath,
        controller: Controller,
        _auth: caller(roles.delete),
    ) -> JSONResponse:
        return await controller.delete(code)

    return router


# ── Factory ──────────────────────────────────────────────────

@dataclass
class CodeEntity:
    """Everything needed to serve one coded entity."""

    get_service: ServiceProvider
    router: APIRouter


def create_code_entity(
    model: type[EntityT],
    config: EntityConfig,
    *,
    extra_rules: Sequence[ValidationRule] = (),
    normalize_code: Callable[[str], str] | None = None,
    roles: CodeEntityRoles | None = None,
    check_code: bool = False,
    prefix_lookup: bool = False,
) -> CodeEntity:
    """Assemble repository, service and router for ``config``.

    Raises ValueError on an invalid config, so a bad entity fails at import
    rather than on its first request.
    """
    problems = validate_entity_config(config)
    if problems:
        raise ValueError(f"Invalid config for {config.entity_name!r}: {', '.join(problems)}")

    rules = tuple(extra_rules)

    def get_service(engine: Annotated[AsyncEngine, Depends(get_engine)]) -> CodeEntityService:
        repository = CodeEntityRepository(engine, model, config)
        return CodeEntityService(repository, extra_rules=rules, normalize_code=normalize_code)

    router = create_code_entity_router(
        config,
        get_service,
        roles,
        check_code=check_code,
        prefix_lookup=prefix_lookup,
    )
    return CodeEntity(
        get_service=get_service,
        router=router,
    )
