"""Declarative configuration for a coded entity."""

from collections.abc import Sequence
from dataclasses import dataclass, field

DEFAULT_SEARCHABLE_FIELDS: tuple[str, ...] = ("code", "name")
DEFAULT_LIMIT = 20
MAX_LIMIT = 100

# Columns every coded entity may be sorted by, before searchable fields.
BASE_SORT_FIELDS: tuple[str, ...] = ("code", "name", "is_active", "created_at", "updated_at")


@dataclass(frozen=True)
class EntityConfig:
    entity_name: str
    table_name: str
    api_path: str
    code_length: int
    searchable_fields: tuple[str, ...] = field(default=DEFAULT_SEARCHABLE_FIELDS)
    default_limit: int = DEFAULT_LIMIT
    max_limit: int = MAX_LIMIT

    @property
    def sort_fields(self) -> tuple[str, ...]:
        """Sort allow-list: base columns plus searchable fields, de-duplicated."""
        return tuple(dict.fromkeys((*BASE_SORT_FIELDS, *self.searchable_fields)))


def make_entity_config(
    entity_name: str,
    table_name: str,
    code_length: int,
    **overrides,
) -> EntityConfig:
    """Build a config with the standard defaults, overriding any field."""
    values = {
        "entity_name": entity_name,
        "table_name": table_name,
        "code_length": code_length,
        "api_path": f"/api/{entity_name}",
        "searchable_fields": DEFAULT_SEARCHABLE_FIELDS,
        "default_limit": DEFAULT_LIMIT,
        "max_limit": MAX_LIMIT,
    }
    values.update(overrides)
    values["searchable_fields"] = tuple(values["searchable_fields"])
    return EntityConfig(**values)


def validate_entity_config(config: EntityConfig) -> list[str]:
    """Return every problem with ``config``; an empty list means valid."""
    errors: list[str] = []

    if not config.entity_name or not config.entity_name.strip():
        errors.append("entity_name is required")
    if not config.table_name or not config.table_name.strip():
        errors.append("table_name is required")
    if not config.api_path or not config.api_path.strip():
        errors.append("api_path is required")
    if not isinstance(config.code_length, int) or config.code_length <= 0:
        errors.append("code_length must be a positive number")
    if isinstance(config.searchable_fields, str) or not isinstance(config.searchable_fields, Sequence):
        errors.append("searchable_fields must be a sequence of column names")
    if not isinstance(config.default_limit, int) or config.default_limit <= 0:
        errors.append("default_limit must be a positive number")
    if not isinstance(config.max_limit, int) or config.max_limit <= 0:
        errors.append("max_limit must be a positive number")
    if (
        isinstance(config.default_limit, int)
        and isinstance(config.max_limit, int)
        and config.default_limit > config.max_limit
    ):
        errors.append("default_limit cannot be greater than max_limit")

    return errors
