"""
Field Schema Providers.

The pipeline never reads schemas from storage itself; a provider is
injected into the orchestrator. Two implementations are shipped: an
in-memory one and a YAML/JSON file reader used by the CLI.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import yaml

from bill_extraction.utils.exceptions import SchemaUnavailableError
from bill_extraction.utils.logger import get_logger
from bill_extraction.reconciliation.schema import FieldSchemaEntry

logger = get_logger(__name__)


class FieldSchemaProvider(Protocol):
    """Source of caller-defined field schemas."""

    def fetch_field_schema(self, user_id: Optional[str]) -> List[FieldSchemaEntry]: ...


def _entries_from(raw: Any, user_id: Optional[str]) -> List[FieldSchemaEntry]:
    """
    Read entries from a list, a {"fields": [...]} mapping or a
    {"users": {user_id: [...]}} mapping.
    """
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        if 'users' in raw:
            users = raw.get('users') or {}
            if user_id is None or user_id not in users:
                raise SchemaUnavailableError(user_id, "no schema defined for user")
            raw = users[user_id]
        else:
            raw = raw.get('fields', [])
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise SchemaUnavailableError(user_id, f"schema must be a list, got {type(raw).__name__}")

    entries = []
    for item in raw:
        if isinstance(item, FieldSchemaEntry):
            entries.append(item)
            continue
        if not isinstance(item, Mapping):
            raise SchemaUnavailableError(user_id, f"schema entry must be a mapping: {item!r}")
        try:
            entries.append(FieldSchemaEntry.from_dict(dict(item)))
        except (TypeError, ValueError) as e:
            raise SchemaUnavailableError(user_id, str(e))
    return entries


class StaticSchemaProvider:
    """
    In-memory provider.

    Example:
        >>> provider = StaticSchemaProvider([{"name": "total_amount", "fieldType": "currency"}])
        >>> [e.name for e in provider.fetch_field_schema("user-1")]
        ['total_amount']
    """

    def __init__(self, schema: Union[Sequence[Any], Mapping[str, Any], None] = None) -> None:
        self._schema = schema

    def fetch_field_schema(self, user_id: Optional[str]) -> List[FieldSchemaEntry]:
        return _entries_from(self._schema, user_id)


class YamlSchemaProvider:
    """
    Reads a schema from a YAML or JSON file on every fetch.

    Attributes:
        path: Schema file path
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def fetch_field_schema(self, user_id: Optional[str]) -> List[FieldSchemaEntry]:
        """
        Load the schema file.

        Raises:
            SchemaUnavailableError: If the file is missing or malformed.
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw: Dict[str, Any] = yaml.safe_load(f)
        except FileNotFoundError:
            raise SchemaUnavailableError(user_id, f"schema file not found: {self.path}")
        except (OSError, yaml.YAMLError) as e:
            raise SchemaUnavailableError(user_id, f"could not read {self.path}: {e}")

        entries = _entries_from(raw, user_id)
        logger.debug(f"Loaded {len(entries)} schema entries from {self.path}")
        return entries
