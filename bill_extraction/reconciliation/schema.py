"""
Dynamic Field Schema.

Caller-defined field definitions and the immutable snapshot that is
threaded through one pipeline invocation.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from bill_extraction.utils.helpers import content_fingerprint
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)


class FieldType(str, Enum):
    """Declared type of a dynamic field."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    CURRENCY = "currency"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ('false', '0', 'no', 'off', '')
    return bool(value)


@dataclass(frozen=True)
class FieldSchemaEntry:
    """
    One caller-defined field.

    Attributes:
        name: Key used for the bill's dynamic field
        display_name: Label shown to users
        field_type: Declared value type
        is_enabled: Disabled entries are never mapped
        display_order: Mapping order
        match_pattern: Canonical slot name or regex over canonical slot names

    Example:
        >>> entry = FieldSchemaEntry.from_dict({"name": "total_amount", "fieldType": "currency"})
        >>> entry.field_type
        <FieldType.CURRENCY: 'currency'>
    """
    name: str
    display_name: Optional[str] = None
    field_type: FieldType = FieldType.TEXT
    is_enabled: bool = True
    display_order: int = 0
    match_pattern: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldSchemaEntry':
        """
        Build an entry from snake_case or camelCase keys.

        Raises:
            ValueError: If the entry has no name.
        """
        name = _pick(data, 'name')
        if not name or not str(name).strip():
            raise ValueError(f"Field schema entry without a name: {data!r}")

        raw_type = str(_pick(data, 'field_type', 'fieldType', 'type', default='text')).lower()
        try:
            field_type = FieldType(raw_type)
        except ValueError:
            logger.warning(f"Unknown field type '{raw_type}' for '{name}', using text")
            field_type = FieldType.TEXT

        return cls(
            name=str(name).strip(),
            display_name=_pick(data, 'display_name', 'displayName'),
            field_type=field_type,
            is_enabled=_as_bool(_pick(data, 'is_enabled', 'isEnabled', 'enabled', default=True)),
            display_order=int(_pick(data, 'display_order', 'displayOrder', default=0)),
            match_pattern=_pick(data, 'match_pattern', 'matchPattern'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'display_name': self.display_name,
            'field_type': self.field_type.value,
            'is_enabled': self.is_enabled,
            'display_order': self.display_order,
            'match_pattern': self.match_pattern,
        }


@dataclass(frozen=True)
class SchemaSnapshot:
    """
    Immutable, ordered set of schema entries for one invocation.

    Example:
        >>> snapshot = SchemaSnapshot.from_entries([{"name": "amount", "fieldType": "number"}])
        >>> [e.name for e in snapshot.enabled_entries()]
        ['amount']
    """
    entries: Tuple[FieldSchemaEntry, ...] = ()

    @classmethod
    def from_entries(cls, entries: Optional[Iterable[Any]]) -> 'SchemaSnapshot':
        """Build a snapshot from entries or their dict forms."""
        built = []
        for entry in entries or ():
            if isinstance(entry, FieldSchemaEntry):
                built.append(entry)
            else:
                built.append(FieldSchemaEntry.from_dict(dict(entry)))
        return cls(entries=tuple(built))

    def enabled_entries(self) -> Tuple[FieldSchemaEntry, ...]:
        """Enabled entries by display order; equal orders keep their position."""
        indexed = [(entry.display_order, index, entry) for index, entry in enumerate(self.entries) if entry.is_enabled]
        return tuple(entry for _, _, entry in sorted(indexed, key=lambda item: (item[0], item[1])))

    @property
    def fingerprint(self) -> str:
        """Stable hash of the entries, used in result cache keys."""
        return content_fingerprint(*(json.dumps(e.to_dict(), sort_keys=True) for e in self.entries))

    def __iter__(self) -> Iterator[FieldSchemaEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)


EMPTY_SCHEMA = SchemaSnapshot()
