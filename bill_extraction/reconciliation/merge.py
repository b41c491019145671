"""
Bill Merging and Deduplication.

Two candidate values for the same field are resolved by fixed rules:
    - a defined value beats an undefined one
    - strings: non-placeholder, then longer, then lexically smaller
    - numbers: non-zero, then larger magnitude, then larger value
    - dates: the later date
The rules are symmetric, so the argument order never changes the winner
for values of the same type.
"""

import re
from datetime import date
from difflib import SequenceMatcher
from typing import Any, Iterable, List, Optional

from bill_extraction.utils.logger import get_logger
from bill_extraction.extraction.extraction_result import (
    CANONICAL_FIELDS,
    Bill,
    CanonicalFields,
    DynamicValue,
)
from .mapping import DEFAULT_PLACEHOLDERS, apply_dynamic_fields, is_placeholder

logger = get_logger(__name__)

_COMPANY_FORMS_RE = re.compile(
    r'\b(?:zrt|kft|nyrt|bt|kkt|inc|llc|ltd|corp|gmbh|plc|co)\b\.?', re.IGNORECASE
)
_NON_WORD_RE = re.compile(r'[^\w]+')

VENDOR_SIMILARITY = 0.8
AMOUNT_TOLERANCE = 0.01


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def choose_value(a: Any, b: Any, placeholder_values: Iterable[str] = DEFAULT_PLACEHOLDERS) -> Any:
    """
    Pick the winner of two candidate values.

    Example:
        >>> choose_value(0, 50)
        50
        >>> choose_value("Unknown", "Acme Power")
        'Acme Power'
        >>> choose_value(date(2023, 1, 1), date(2023, 6, 1))
        datetime.date(2023, 6, 1)
    """
    if isinstance(a, DynamicValue) or isinstance(b, DynamicValue):
        inner_a = a.value if isinstance(a, DynamicValue) else a
        inner_b = b.value if isinstance(b, DynamicValue) else b
        if inner_a is None:
            return b
        if inner_b is None:
            return a
        return a if choose_value(inner_a, inner_b, placeholder_values) is inner_a else b

    if a is None:
        return b
    if b is None:
        return a

    if isinstance(a, str) and isinstance(b, str):
        marks = tuple(placeholder_values)
        a_placeholder = is_placeholder(a, marks)
        b_placeholder = is_placeholder(b, marks)
        if a_placeholder != b_placeholder:
            return b if a_placeholder else a
        if len(a) != len(b):
            return a if len(a) > len(b) else b
        return a if a <= b else b

    if isinstance(a, bool) and isinstance(b, bool):
        return a if a or not b else b

    if _is_number(a) and _is_number(b):
        if (a == 0) != (b == 0):
            return b if a == 0 else a
        if abs(a) != abs(b):
            return a if abs(a) > abs(b) else b
        return a if a >= b else b

    if isinstance(a, date) and isinstance(b, date):
        return a if a >= b else b

    # Mismatched types: keep the first
    return a


def merge_fields(primary: CanonicalFields, secondary: CanonicalFields) -> CanonicalFields:
    """Merge canonical fields slot by slot, keeping the winner's provenance."""
    merged = CanonicalFields()
    for name in CANONICAL_FIELDS:
        first = primary.get(name)
        second = secondary.get(name)
        winner = choose_value(first, second)
        if winner is None:
            continue
        source = primary.provenance.get(name) if winner is first else secondary.provenance.get(name)
        merged.set_field(name, winner, source)
    return merged


def merge_bills(primary: Bill, secondary: Bill) -> Bill:
    """
    Merge two bills describing the same document or payment.

    The primary bill keeps its source, method and language. A dynamic field
    the primary already holds is kept unless it is a placeholder.
    """
    dynamic = apply_dynamic_fields(primary.dynamic_fields, secondary.dynamic_fields)

    return Bill(
        fields=merge_fields(primary.fields, secondary.fields),
        dynamic_fields=dynamic,
        source=primary.source,
        extraction_method=primary.extraction_method,
        language=primary.language,
    )


def _vendor_key(vendor: Optional[str]) -> str:
    if not vendor:
        return ""
    stripped = _COMPANY_FORMS_RE.sub(' ', vendor.lower())
    return _NON_WORD_RE.sub(' ', stripped).strip()


def vendors_match(a: Optional[str], b: Optional[str], threshold: float = VENDOR_SIMILARITY) -> bool:
    """Fuzzy vendor comparison ignoring case, punctuation and company forms."""
    key_a, key_b = _vendor_key(a), _vendor_key(b)
    if not key_a or not key_b or is_placeholder(a) or is_placeholder(b):
        return False
    if key_a in key_b or key_b in key_a:
        return True
    return SequenceMatcher(None, key_a, key_b).ratio() >= threshold


def amounts_match(a: Optional[float], b: Optional[float], tolerance: float = AMOUNT_TOLERANCE) -> bool:
    if a is None or b is None:
        return False
    return abs(a - b) <= tolerance * max(abs(a), abs(b))


def bills_match(a: Bill, b: Bill) -> bool:
    """
    Whether two bills describe the same payment.

    True for equal invoice numbers, or for matching vendors with amounts
    within 1% of each other.
    """
    inv_a = (a.fields.invoice_number or '').replace(' ', '').lower()
    inv_b = (b.fields.invoice_number or '').replace(' ', '').lower()
    if inv_a and inv_a == inv_b:
        return True
    return vendors_match(a.fields.vendor, b.fields.vendor) and amounts_match(a.fields.amount, b.fields.amount)


def deduplicate_bills(bills: Iterable[Bill]) -> List[Bill]:
    """
    Collapse duplicate bills, merging each duplicate into its first occurrence.

    Order of first occurrences is preserved.
    """
    unique: List[Bill] = []
    for bill in bills:
        for index, existing in enumerate(unique):
            if bills_match(existing, bill):
                unique[index] = merge_bills(existing, bill)
                logger.debug(f"Merged duplicate bill into #{index}: {bill!r}")
                break
        else:
            unique.append(bill)
    return unique
