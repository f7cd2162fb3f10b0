"""Field-type resolution: user schema -> canonical semantic roles.

Users can rename or add bill fields (``issuer_name`` instead of ``vendor``,
``total_amount`` instead of ``amount``). Matching and merging only care
about seven semantic roles, so every run first resolves the active field
mappings into a FieldTypeMap: role -> ordered field names to read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Sequence

from ..schemas.bill_record import FieldMapping

logger = logging.getLogger(__name__)


class FieldRole(str, Enum):
    """Canonical semantic role of a bill field."""

    VENDOR = "vendor"
    AMOUNT = "amount"
    DATE = "date"
    DUE_DATE = "dueDate"
    INVOICE_NUMBER = "invoiceNumber"
    ACCOUNT_NUMBER = "accountNumber"
    CATEGORY = "category"

    @classmethod
    def parse(cls, value: str | None) -> FieldRole | None:
        """Resolve a role name, accepting camelCase or snake_case."""
        if not value:
            return None
        key = value.strip().replace("_", "").replace("-", "").lower()
        return _ROLE_BY_KEY.get(key)


_ROLE_BY_KEY = {role.value.lower(): role for role in FieldRole}

# Name-inference table, evaluated top to bottom. DUE_DATE must come before
# DATE so "payment_due_date" is not typed as an invoice date.
ROLE_KEYWORDS: tuple[tuple[FieldRole, tuple[str, ...]], ...] = (
    (FieldRole.VENDOR, ("vendor", "issuer", "company")),
    (FieldRole.AMOUNT, ("amount", "total", "cost")),
    (FieldRole.DUE_DATE, ("due", "payment", "deadline")),
    (FieldRole.DATE, ("date", "issued")),
    (FieldRole.INVOICE_NUMBER, ("invoice", "reference")),
    (FieldRole.ACCOUNT_NUMBER, ("account", "customer")),
    (FieldRole.CATEGORY, ("category", "type")),
)

# Synonyms read when the user has no field mappings at all
DEFAULT_ROLE_FIELDS: Mapping[FieldRole, tuple[str, ...]] = {
    FieldRole.VENDOR: ("issuer_name", "vendor", "company_name"),
    FieldRole.AMOUNT: ("total_amount", "amount", "sum", "cost"),
    FieldRole.DATE: ("invoice_date", "date", "bill_date"),
    FieldRole.DUE_DATE: ("due_date", "payment_date", "deadline", "dueDate"),
    FieldRole.INVOICE_NUMBER: ("invoice_number", "invoiceNumber", "reference"),
    FieldRole.ACCOUNT_NUMBER: ("account_number", "account_id", "customer_id", "accountNumber"),
    FieldRole.CATEGORY: ("category", "bill_type", "expense_category"),
}


def infer_field_role(field_name: str) -> FieldRole | None:
    """Infer a role from a field name via ordered keyword tests."""
    lower_name = field_name.lower()
    for role, keywords in ROLE_KEYWORDS:
        if any(keyword in lower_name for keyword in keywords):
            return role
    return None


@dataclass(frozen=True)
class FieldTypeMap:
    """Role -> ordered, non-empty tuple of field names to read.

    The canonical role name is always present (appended when the synonyms
    lack it) so a record using canonical names is understood whatever the
    user's schema says.
    """

    roles: Mapping[FieldRole, tuple[str, ...]]

    def fields_for(self, role: FieldRole) -> tuple[str, ...]:
        return self.roles.get(role, (role.value,))

    def role_of(self, field_name: str) -> FieldRole | None:
        """Return the first role probing ``field_name``, if any."""
        for role in FieldRole:
            if field_name in self.fields_for(role):
                return role
        return None

    def to_dict(self) -> dict[str, list[str]]:
        return {role.value: list(self.fields_for(role)) for role in FieldRole}


def _ordered(mappings: Iterable[FieldMapping]) -> list[FieldMapping]:
    indexed = list(enumerate(mappings))
    indexed.sort(
        key=lambda item: (
            item[1].display_order is None,
            item[1].display_order or 0,
            item[0],
        )
    )
    return [mapping for _, mapping in indexed]


def build_field_type_map(mappings: Sequence[FieldMapping] | None = None) -> FieldTypeMap:
    """Build the FieldTypeMap for one deduplication run.

    Never raises. An empty mapping list yields the default synonyms; a
    mapping whose role can be neither read from ``field_type`` nor inferred
    from its name is skipped.

    Args:
        mappings: Active user field mappings (may be empty or None).

    Returns:
        FieldTypeMap covering all seven roles.
    """
    active = [m for m in (mappings or []) if m.is_enabled and m.name]

    if not active:
        roles = {
            role: _with_canonical(DEFAULT_ROLE_FIELDS[role], role) for role in FieldRole
        }
        return FieldTypeMap(roles=roles)

    collected: dict[FieldRole, list[str]] = {role: [] for role in FieldRole}
    for mapping in _ordered(active):
        role = FieldRole.parse(mapping.field_type) or infer_field_role(mapping.name)
        if role is None:
            logger.debug(
                "Field mapping %r (type %r) has no canonical role; copied through only",
                mapping.name,
                mapping.field_type,
            )
            continue
        if mapping.name not in collected[role]:
            collected[role].append(mapping.name)

    roles = {role: _with_canonical(names, role) for role, names in collected.items()}
    logger.debug("Resolved field type map from %d mappings", len(active))
    return FieldTypeMap(roles=roles)


def _with_canonical(names: Iterable[str], role: FieldRole) -> tuple[str, ...]:
    result = list(names)
    if role.value not in result:
        result.append(role.value)
    return tuple(result)
