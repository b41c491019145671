"""
Canonical -> Dynamic Field Mapping.

A schema entry receives a canonical slot by its explicit match pattern
first, then by substring heuristics on its name. Values are coerced to the
entry's declared type.
"""

import re
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.extraction.extraction_result import (
    CANONICAL_FIELDS,
    CanonicalFields,
    DynamicValue,
    ValueKind,
)
from bill_extraction.postprocessor import parse_amount, to_date
from .schema import FieldSchemaEntry, FieldType, SchemaSnapshot

logger = get_logger(__name__)

# Name substrings -> canonical slot, checked in this order
NAME_HEURISTICS = (
    (('amount', 'total'), 'amount'),
    (('issuer', 'vendor', 'company'), 'vendor'),
    (('invoice_date', 'issue_date', 'bill_date'), 'issue_date'),
    (('due_date',), 'due_date'),
    (('invoice_number', 'invoice_no'), 'invoice_number'),
    (('account',), 'account_number'),
    (('category',), 'category'),
    (('currency',), 'currency'),
)

DEFAULT_PLACEHOLDERS = ("", "unknown", "n/a")

_TRUE_WORDS = ('true', 'yes', 'igen', '1', 'y')
_FALSE_WORDS = ('false', 'no', 'nem', '0', 'n')


def placeholders() -> tuple:
    return tuple(str(p).strip().lower() for p in get_config("reconciliation.placeholders", DEFAULT_PLACEHOLDERS))


def is_placeholder(value: Any, placeholder_values: Optional[Iterable[str]] = None) -> bool:
    """True for None, empty dynamic values and placeholder strings ("Unknown", "N/A", "")."""
    if isinstance(value, DynamicValue):
        value = value.value
    if value is None:
        return True
    if isinstance(value, str):
        marks = DEFAULT_PLACEHOLDERS if placeholder_values is None else tuple(placeholder_values)
        return value.strip().lower() in marks
    return False


def canonical_slot_for(entry: FieldSchemaEntry) -> Optional[str]:
    """
    Decide which canonical slot feeds a schema entry.

    Example:
        >>> canonical_slot_for(FieldSchemaEntry(name="total_amount"))
        'amount'
        >>> canonical_slot_for(FieldSchemaEntry(name="szolgaltato", match_pattern="vendor"))
        'vendor'
    """
    pattern = (entry.match_pattern or '').strip()
    if pattern:
        if pattern in CANONICAL_FIELDS:
            return pattern
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning(f"Invalid match pattern for '{entry.name}': {e}")
        else:
            for slot in CANONICAL_FIELDS:
                if regex.search(slot):
                    return slot

    name = entry.name.lower()
    for needles, slot in NAME_HEURISTICS:
        if any(needle in name for needle in needles):
            return slot
    return None


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def coerce_value(value: Any, field_type: FieldType) -> Optional[DynamicValue]:
    """
    Convert a canonical value to a tagged value of the entry's type.

    Returns:
        DynamicValue, or None when the value cannot be represented.
    """
    if value is None:
        return None

    if field_type in (FieldType.NUMBER, FieldType.CURRENCY):
        if isinstance(value, bool):
            return DynamicValue(ValueKind.NUMBER, float(value))
        if isinstance(value, (int, float)):
            return DynamicValue(ValueKind.NUMBER, float(value))
        text = str(value)
        if any(c.isdigit() for c in text):
            return DynamicValue(ValueKind.NUMBER, parse_amount(text))
        return DynamicValue(ValueKind.TEXT, text)

    if field_type == FieldType.DATE:
        parsed = to_date(value)
        return DynamicValue(ValueKind.DATE, parsed) if parsed else None

    if field_type == FieldType.BOOLEAN:
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _FALSE_WORDS:
                return DynamicValue(ValueKind.BOOLEAN, False)
            return DynamicValue(ValueKind.BOOLEAN, word in _TRUE_WORDS or not is_placeholder(value))
        return DynamicValue(ValueKind.BOOLEAN, bool(value))

    if isinstance(value, date):
        return DynamicValue(ValueKind.TEXT, value.isoformat())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return DynamicValue(ValueKind.TEXT, _format_number(value))
    return DynamicValue(ValueKind.TEXT, str(value))


def map_to_schema(fields: CanonicalFields, snapshot: Optional[SchemaSnapshot]) -> Dict[str, DynamicValue]:
    """
    Map canonical fields onto the enabled schema entries.

    Args:
        fields: Extracted canonical fields.
        snapshot: Schema for this invocation (may be empty).

    Returns:
        Dynamic values keyed by entry name, only for populated slots.
    """
    mapped: Dict[str, DynamicValue] = {}
    if not snapshot:
        return mapped

    for entry in snapshot.enabled_entries():
        slot = canonical_slot_for(entry)
        if slot is None or not fields.is_populated(slot):
            continue
        coerced = coerce_value(fields.get(slot), entry.field_type)
        if coerced is not None and not coerced.is_empty():
            mapped[entry.name] = coerced

    logger.debug(f"Mapped {len(mapped)} of {len(snapshot)} schema fields")
    return mapped


def apply_dynamic_fields(
    existing: Mapping[str, DynamicValue],
    candidates: Mapping[str, DynamicValue],
    placeholder_values: Optional[Iterable[str]] = None
) -> Dict[str, DynamicValue]:
    """
    Merge candidate dynamic values into existing ones.

    An existing value that is non-empty and not a placeholder is never
    overwritten.

    Returns:
        A new dictionary; the inputs are not modified.
    """
    marks = tuple(placeholder_values) if placeholder_values is not None else placeholders()
    merged = dict(existing)
    for name, candidate in candidates.items():
        current = merged.get(name)
        if current is not None and not is_placeholder(current, marks):
            continue
        if candidate is None or is_placeholder(candidate, marks):
            continue
        merged[name] = candidate
    return merged
