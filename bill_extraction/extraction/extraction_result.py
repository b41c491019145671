"""
Extraction Result Data Classes.

This module defines the data structures produced by the pipeline:
canonical bill fields with provenance, tagged dynamic field values,
bills and the final extraction result.

Results carry no timestamps or durations, so identical input gives an
identical serialized result.
"""

import json
from dataclasses import dataclass, field, fields as dataclass_fields
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from bill_extraction.utils.exceptions import BillExtractionError, ErrorKind


CANONICAL_FIELDS = (
    'vendor',
    'amount',
    'currency',
    'issue_date',
    'due_date',
    'account_number',
    'invoice_number',
    'category',
)

DATE_FIELDS = ('issue_date', 'due_date')


def _date_to_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if isinstance(value, date) else value


def _str_to_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class ValueKind(str, Enum):
    """Type tag of a dynamic field value."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class DynamicValue:
    """
    A value mapped onto a caller-defined field, tagged with its kind.

    Example:
        >>> DynamicValue(ValueKind.NUMBER, 45678.0).to_dict()
        {'kind': 'number', 'value': 45678.0}
    """
    kind: ValueKind
    value: Any

    def is_empty(self) -> bool:
        return self.value is None or (isinstance(self.value, str) and not self.value.strip())

    def to_dict(self) -> Dict[str, Any]:
        value = _date_to_str(self.value) if self.kind == ValueKind.DATE else self.value
        return {'kind': self.kind.value, 'value': value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DynamicValue':
        kind = ValueKind(data.get('kind', ValueKind.TEXT.value))
        value = data.get('value')
        if kind == ValueKind.DATE:
            value = _str_to_date(value)
        return cls(kind=kind, value=value)


@dataclass
class CanonicalFields:
    """
    The fixed field set the pipeline always tries to populate.

    Attributes:
        vendor: Issuer of the bill
        amount: Amount to pay
        currency: ISO currency code
        issue_date: Date the bill was issued
        due_date: Payment deadline
        account_number: Customer/account identifier
        invoice_number: Bill or invoice identifier
        category: Service category from the taxonomy
        provenance: Which rule or strategy produced each populated field

    Example:
        >>> fields = CanonicalFields()
        >>> fields.set_field("amount", 124.56, "en.amount.current_charges")
        >>> fields.populated_fields
        ['amount']
    """
    vendor: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    account_number: Optional[str] = None
    invoice_number: Optional[str] = None
    category: Optional[str] = None

    provenance: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        if name not in CANONICAL_FIELDS:
            raise KeyError(name)
        return getattr(self, name)

    def set_field(self, name: str, value: Any, source: Optional[str] = None) -> None:
        """Set a canonical field and record where the value came from."""
        if name not in CANONICAL_FIELDS:
            raise KeyError(name)
        setattr(self, name, value)
        if value is None:
            self.provenance.pop(name, None)
        elif source:
            self.provenance[name] = source

    def is_populated(self, name: str) -> bool:
        value = self.get(name)
        if value is None:
            return False
        if isinstance(value, str):
            return bool(value.strip())
        return True

    @property
    def values(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in CANONICAL_FIELDS}

    @property
    def populated_fields(self) -> List[str]:
        return [name for name in CANONICAL_FIELDS if self.is_populated(name)]

    @property
    def missing_fields(self) -> List[str]:
        return [name for name in CANONICAL_FIELDS if not self.is_populated(name)]

    @property
    def has_vendor_or_amount(self) -> bool:
        return self.is_populated('vendor') or self.is_populated('amount')

    def copy(self) -> 'CanonicalFields':
        copied = CanonicalFields(**self.values)
        copied.provenance = dict(self.provenance)
        return copied

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in CANONICAL_FIELDS}
        for name in DATE_FIELDS:
            data[name] = _date_to_str(data[name])
        data['provenance'] = dict(self.provenance)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CanonicalFields':
        values = {name: data.get(name) for name in CANONICAL_FIELDS}
        for name in DATE_FIELDS:
            values[name] = _str_to_date(values[name])
        return cls(provenance=dict(data.get('provenance') or {}), **values)


@dataclass
class BillSource:
    """Where a bill came from."""
    type: str = "email"
    message_id: Optional[str] = None
    attachment_id: Optional[str] = None
    file_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'message_id': self.message_id,
            'attachment_id': self.attachment_id,
            'file_name': self.file_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillSource':
        known = {f.name for f in dataclass_fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Bill:
    """
    One extracted bill: canonical fields plus caller-defined dynamic fields.

    Attributes:
        fields: Canonical fields with provenance
        dynamic_fields: Values keyed by FieldSchemaEntry.name
        source: Where the bill came from
        extraction_method: Strategy that produced the bill
        language: Language the document was processed as
    """
    fields: CanonicalFields = field(default_factory=CanonicalFields)
    dynamic_fields: Dict[str, DynamicValue] = field(default_factory=dict)
    source: BillSource = field(default_factory=BillSource)
    extraction_method: str = "pattern"
    language: str = "en"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fields': self.fields.to_dict(),
            'dynamic_fields': {name: value.to_dict() for name, value in self.dynamic_fields.items()},
            'source': self.source.to_dict(),
            'extraction_method': self.extraction_method,
            'language': self.language,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bill':
        return cls(
            fields=CanonicalFields.from_dict(data.get('fields', {})),
            dynamic_fields={
                name: DynamicValue.from_dict(value)
                for name, value in (data.get('dynamic_fields') or {}).items()
            },
            source=BillSource.from_dict(data.get('source') or {}),
            extraction_method=data.get('extraction_method', 'pattern'),
            language=data.get('language', 'en'),
        )

    def __repr__(self) -> str:
        return (
            f"Bill(vendor={self.fields.vendor!r}, amount={self.fields.amount}, "
            f"currency={self.fields.currency}, due={_date_to_str(self.fields.due_date)})"
        )


@dataclass(frozen=True)
class ResultError:
    """Typed failure attached to an unsuccessful result."""
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, error: BillExtractionError) -> 'ResultError':
        return cls(kind=error.kind, message=str(error))

    def to_dict(self) -> Dict[str, str]:
        return {'kind': self.kind.value, 'message': self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResultError':
        return cls(kind=ErrorKind(data['kind']), message=data.get('message', ''))


@dataclass
class ExtractionResult:
    """
    Terminal artifact of one pipeline run.

    Attributes:
        success: Whether the confidence threshold was met with vendor or amount
        bills: Best-effort bills, present even on failure when anything was found
        confidence: Score in [0, 1]
        error: Typed failure, None on success
        warnings: Absorbed, non-fatal problems
        decode_tier: Decoder tier that produced the text (PDF input only)
        debug_trace: Diagnostics, only when debugging was requested

    Example:
        >>> result = ExtractionResult(success=True, confidence=0.65)
        >>> print(result.to_json())
    """
    success: bool = False
    bills: List[Bill] = field(default_factory=list)
    confidence: float = 0.0
    error: Optional[ResultError] = None
    warnings: List[str] = field(default_factory=list)
    decode_tier: Optional[str] = None
    debug_trace: Optional[Dict[str, Any]] = None

    @property
    def bill(self) -> Optional[Bill]:
        """The first bill, if any."""
        return self.bills[0] if self.bills else None

    def add_warning(self, warning: str) -> None:
        """Add a warning message."""
        self.warnings.append(warning)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Returns:
            Dictionary representation of the extraction result.
        """
        data = {
            'success': self.success,
            'confidence': self.confidence,
            'bills': [bill.to_dict() for bill in self.bills],
            'error': self.error.to_dict() if self.error else None,
            'warnings': list(self.warnings),
            'decode_tier': self.decode_tier,
        }
        if self.debug_trace is not None:
            data['debug_trace'] = self.debug_trace
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False, default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtractionResult':
        error = data.get('error')
        return cls(
            success=data.get('success', False),
            bills=[Bill.from_dict(bill) for bill in data.get('bills', [])],
            confidence=data.get('confidence', 0.0),
            error=ResultError.from_dict(error) if error else None,
            warnings=list(data.get('warnings', [])),
            decode_tier=data.get('decode_tier'),
            debug_trace=data.get('debug_trace'),
        )

    def __repr__(self) -> str:
        kind = self.error.kind.value if self.error else None
        return (
            f"ExtractionResult(success={self.success}, bills={len(self.bills)}, "
            f"confidence={self.confidence:.2f}, error={kind})"
        )
