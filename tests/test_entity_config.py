"""Entity configuration helpers."""

import pytest

from app.api.code_entity.routes import CodeEntityRoles, create_code_entity
from app.core.security import UserRole, role_satisfies
from app.models.customer import Customer
from app.services.code_entity.config import (
    EntityConfig,
    make_entity_config,
    validate_entity_config,
)


def test_make_entity_config_defaults():
    config = make_entity_config("widget", "widgets", 8)

    assert config.api_path == "/api/widget"
    assert config.searchable_fields == ("code", "name")
    assert config.default_limit == 20
    assert config.max_limit == 100
    assert validate_entity_config(config) == []


def test_make_entity_config_overrides():
    config = make_entity_config(
        "widget", "widgets", 8, api_path="/api/widgets", searchable_fields=["name"], max_limit=50
    )

    assert config.api_path == "/api/widgets"
    assert config.searchable_fields == ("name",)
    assert config.max_limit == 50


def test_sort_fields_include_searchable_fields_once():
    config = make_entity_config("widget", "widgets", 8, searchable_fields=("name", "code"))
    assert config.sort_fields == ("code", "name", "is_active", "created_at", "updated_at")


def test_validate_entity_config_collects_every_problem():
    config = EntityConfig(
        entity_name="",
        table_name=" ",
        api_path="",
        code_length=0,
        searchable_fields="code",
        default_limit=200,
        max_limit=100,
    )

    errors = validate_entity_config(config)
    assert errors == [
        "entity_name is required",
        "table_name is required",
        "api_path is required",
        "code_length must be a positive number",
        "searchable_fields must be a sequence of column names",
        "default_limit cannot be greater than max_limit",
    ]


def test_validate_entity_config_rejects_non_positive_limits():
    config = make_entity_config("widget", "widgets", 8, default_limit=0, max_limit=-1)
    errors = validate_entity_config(config)

    assert "default_limit must be a positive number" in errors
    assert "max_limit must be a positive number" in errors


def test_create_code_entity_rejects_invalid_config():
    with pytest.raises(ValueError, match="code_length"):
        create_code_entity(Customer, make_entity_config("customer", "customers", 0))


def test_default_roles():
    roles = CodeEntityRoles()

    assert roles.read == UserRole.USER
    assert roles.create == roles.update == roles.change_status == UserRole.MANAGER
    assert roles.health == roles.statistics == UserRole.MANAGER
    assert roles.delete == UserRole.ADMIN


def test_role_hierarchy():
    assert role_satisfies(UserRole.ADMIN, UserRole.USER)
    assert role_satisfies(UserRole.MANAGER, UserRole.MANAGER)
    assert not role_satisfies(UserRole.USER, UserRole.MANAGER)
    assert not role_satisfies(UserRole.VIEWER, UserRole.USER)
