"""Value extraction: read role values out of a record's dynamic fields."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..schemas.bill_record import BillRecord, CanonicalBill
from .resolver import FieldRole, FieldTypeMap

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = frozenset({"Unknown", "N/A"})

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)

_CURRENCY_NOISE = re.compile(r"[^\d,.\-+]")


def is_placeholder(value: Any) -> bool:
    """True for values that carry no information (None, blank, Unknown, N/A)."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped in PLACEHOLDER_VALUES
    return False


def values_for_role(record: BillRecord, role: FieldRole, field_map: FieldTypeMap) -> list[Any]:
    """All informative values for ``role``, in field-map order.

    A record may carry several synonyms for one role, each sparsely filled,
    so every present value is returned rather than just the first.
    """
    return [
        record.get(name)
        for name in field_map.fields_for(role)
        if not is_placeholder(record.get(name))
    ]


def best_value(
    record: BillRecord,
    role: FieldRole,
    field_map: FieldTypeMap,
    fallback: Any = None,
) -> Any:
    """First informative value for ``role``, else ``fallback``."""
    values = values_for_role(record, role, field_map)
    return values[0] if values else fallback


def canonical_view(record: BillRecord, field_map: FieldTypeMap) -> CanonicalBill:
    """Project a record onto the seven canonical roles.

    Fields not read by any role are kept in ``extra``.
    """
    role_fields = {name for role in FieldRole for name in field_map.fields_for(role)}
    return CanonicalBill(
        id=record.id,
        origin_type=record.origin_type,
        source_document_id=record.source_document_id,
        vendor=best_value(record, FieldRole.VENDOR, field_map),
        amount=best_value(record, FieldRole.AMOUNT, field_map),
        date=best_value(record, FieldRole.DATE, field_map),
        due_date=best_value(record, FieldRole.DUE_DATE, field_map),
        invoice_number=best_value(record, FieldRole.INVOICE_NUMBER, field_map),
        account_number=best_value(record, FieldRole.ACCOUNT_NUMBER, field_map),
        category=best_value(record, FieldRole.CATEGORY, field_map),
        extra={k: v for k, v in record.fields.items() if k not in role_fields},
    )


def parse_amount(value: Any) -> Decimal | None:
    """Parse an amount to Decimal.

    Accepts numbers and strings such as ``"$1,234.56"``, ``"1.234,56 EUR"``
    or ``"175,95"``.

    Returns:
        Decimal or None if parsing fails.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        return result if result.is_finite() else None
    if not isinstance(value, str):
        return None

    cleaned = _CURRENCY_NOISE.sub("", value)
    if not cleaned or not any(c.isdigit() for c in cleaned):
        return None

    if "," in cleaned and "." in cleaned:
        # Whichever separator comes last is the decimal separator
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) in (1, 2) and cleaned.count(",") == 1:
            cleaned = f"{head}.{tail}"
        else:
            cleaned = cleaned.replace(",", "")

    try:
        result = Decimal(cleaned)
    except InvalidOperation:
        logger.debug("Unparseable amount: %r", value)
        return None
    return result if result.is_finite() else None


def parse_date(value: Any) -> date | None:
    """Parse a date value to a calendar date.

    Returns:
        date or None if parsing fails.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    logger.debug("Unparseable date: %r", value)
    return None
