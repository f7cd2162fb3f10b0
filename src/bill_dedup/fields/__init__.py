"""
Field typing module.

Resolves user field mappings into canonical roles and reads role values
out of bill records.
"""

from .resolver import (
    DEFAULT_ROLE_FIELDS,
    ROLE_KEYWORDS,
    FieldRole,
    FieldTypeMap,
    build_field_type_map,
    infer_field_role,
)
from .values import (
    PLACEHOLDER_VALUES,
    best_value,
    canonical_view,
    is_placeholder,
    parse_amount,
    parse_date,
    values_for_role,
)

__all__ = [
    "FieldRole",
    "FieldTypeMap",
    "ROLE_KEYWORDS",
    "DEFAULT_ROLE_FIELDS",
    "build_field_type_map",
    "infer_field_role",
    "PLACEHOLDER_VALUES",
    "is_placeholder",
    "values_for_role",
    "best_value",
    "canonical_view",
    "parse_amount",
    "parse_date",
]
