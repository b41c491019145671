"""
Field Post-Processor Module.

This module provides the FieldPostProcessor class that cleans and
validates canonical fields after pattern extraction.

Operations:
    - Clean vendor names and identifiers
    - Drop values that fail validation
    - Cross-check issue and due dates
    - Log all transformations
"""

from typing import TYPE_CHECKING, List, Tuple

from bill_extraction.utils.logger import get_logger
from .validators import AmountValidator, DateValidator, VendorValidator

if TYPE_CHECKING:
    from bill_extraction.extraction.extraction_result import CanonicalFields

# Initialize module logger
logger = get_logger(__name__)

_VENDOR_PREFIXES = ('vendor:', 'biller:', 'payee:', 'from:', 'company:', 'szolgáltató:', 'eladó:', 'kibocsátó:')


class FieldPostProcessor:
    """
    Cleans and validates extracted canonical fields.

    Example:
        >>> processor = FieldPostProcessor()
        >>> cleaned, warnings = processor.process(fields)
    """

    def __init__(self) -> None:
        self.date_validator = DateValidator()
        self.amount_validator = AmountValidator()
        self.vendor_validator = VendorValidator()

    def process(self, fields: 'CanonicalFields') -> Tuple['CanonicalFields', List[str]]:
        """
        Clean and validate a copy of the fields.

        Args:
            fields: Fields from pattern extraction.

        Returns:
            Tuple of (processed fields, warnings).
        """
        processed = fields.copy()
        warnings: List[str] = []

        if processed.vendor:
            cleaned = self.clean_name(processed.vendor)
            valid, message = self.vendor_validator.validate(cleaned)
            if valid:
                processed.vendor = cleaned
            else:
                warnings.append(f"Dropped vendor '{processed.vendor}': {message}")
                processed.set_field('vendor', None)

        if processed.amount is not None:
            valid, message = self.amount_validator.validate(processed.amount)
            if not valid:
                warnings.append(f"Dropped amount {processed.amount}: {message}")
                processed.set_field('amount', None)
                processed.set_field('currency', None)

        for name in ('account_number', 'invoice_number'):
            value = processed.get(name)
            if value:
                processed.set_field(name, self.clean_text(value), processed.provenance.get(name))

        for name in ('issue_date', 'due_date'):
            value = processed.get(name)
            if value is not None and not self.date_validator.is_valid_date(value):
                warnings.append(f"Dropped {name} {value}: out of range")
                processed.set_field(name, None)

        if processed.issue_date and processed.due_date:
            valid, message = self.date_validator.is_due_after_issue(processed.issue_date, processed.due_date)
            if not valid:
                warnings.append(message)

        if warnings:
            logger.debug(f"Post-processing produced {len(warnings)} warnings: {warnings}")
        return processed, warnings

    @staticmethod
    def clean_text(text: str) -> str:
        """Collapse whitespace and strip surrounding punctuation."""
        if not text:
            return text
        return ' '.join(text.split()).strip('.,;:')

    @staticmethod
    def clean_name(name: str) -> str:
        """
        Clean a vendor name.

        Collapses whitespace, strips label prefixes and trailing separators.
        A company form's trailing dot ("Zrt.", "Inc.") is kept.
        """
        if not name:
            return name

        name = ' '.join(name.split())
        lowered = name.lower()
        for prefix in _VENDOR_PREFIXES:
            if lowered.startswith(prefix):
                name = name[len(prefix):].strip()
                break

        return name.strip(',;: ')
