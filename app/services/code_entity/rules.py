"""Reusable entity-specific validation rules."""

import re
from collections.abc import Mapping
from typing import Any

from app.services.code_entity.service import Operation, ValidationRule

ALPHANUMERIC_CODE = re.compile(r"^[A-Z0-9]+$")


def upper_code(code: str) -> str:
    return code.strip().upper()


def alphanumeric_code_rule(name_max_length: int) -> ValidationRule:
    """Rule for entities whose codes are plain upper-case alphanumerics.

    The code is checked after trimming and upper-casing; the name is capped at
    ``name_max_length`` characters on both create and update.
    """

    def rule(data: Mapping[str, Any], operation: Operation) -> list[str]:
        errors: list[str] = []

        code = data.get("code")
        if operation == "create" and isinstance(code, str) and code:
            if not ALPHANUMERIC_CODE.match(upper_code(code)):
                errors.append("Code can only contain letters and numbers")

        name = data.get("name")
        if isinstance(name, str) and len(name.strip()) > name_max_length:
            errors.append(f"Name cannot exceed {name_max_length} characters")

        return errors

    return rule
