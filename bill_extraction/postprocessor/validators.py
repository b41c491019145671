"""
Data Validators Module.

This module provides validation functions for:
    - Date fields (plausible range, due/issue ordering)
    - Amount fields
    - Vendor names
"""

import re
from datetime import date, datetime
from typing import Optional, Tuple, Union

from config import get_config
from bill_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

DateLike = Union[date, datetime, str]


class DateValidator:
    """
    Validates date fields.

    Checks for:
        - Valid date format
        - Reasonable date range
        - Due date not before the issue date

    Example:
        >>> validator = DateValidator()
        >>> validator.is_valid("2026-01-15")
        True
        >>> validator.validate("1890-01-01")
        (False, 'Year 1890 is too old')
    """

    # Reasonable date range for bills
    MIN_YEAR = 2000
    MAX_YEAR = 2100

    def __init__(self) -> None:
        """Initialize the date validator."""
        self.date_format = get_config("postprocessing.date.output_format", "%Y-%m-%d")
        self.min_year = int(get_config("postprocessing.date.min_year", self.MIN_YEAR))
        self.max_year = int(get_config("postprocessing.date.max_year", self.MAX_YEAR))

    def _coerce(self, value: DateLike) -> Optional[date]:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return datetime.strptime(value, self.date_format).date()
        except (TypeError, ValueError):
            return None

    def is_valid_date(self, value: DateLike) -> bool:
        """True when the date parses and its year lies in the accepted range."""
        parsed = self._coerce(value)
        return parsed is not None and self.min_year <= parsed.year <= self.max_year

    def is_valid(self, date_str: DateLike) -> bool:
        valid, _ = self.validate(date_str)
        return valid

    def validate(self, date_str: DateLike) -> Tuple[bool, str]:
        """
        Validate a date with detailed feedback.

        Args:
            date_str: Date or date string in the output format.

        Returns:
            Tuple of (is_valid, message).
        """
        if not date_str:
            return False, "Date is empty"

        parsed = self._coerce(date_str)
        if parsed is None:
            return False, f"Invalid date format: {date_str}"
        if parsed.year < self.min_year:
            return False, f"Year {parsed.year} is too old"
        if parsed.year > self.max_year:
            return False, f"Year {parsed.year} is too far in future"
        return True, "Valid date"

    def is_due_after_issue(self, issue_date: DateLike, due_date: DateLike) -> Tuple[bool, str]:
        """
        Check that the due date is on or after the issue date.

        Returns:
            Tuple of (is_valid, message). Unparseable input is not an error.
        """
        issued = self._coerce(issue_date)
        due = self._coerce(due_date)
        if issued is None or due is None:
            return True, "Could not validate date relationship"
        if due < issued:
            return False, "Due date is before issue date"
        return True, "Valid date relationship"


class AmountValidator:
    """
    Validates amount fields.

    Example:
        >>> AmountValidator().validate(-100)
        (False, 'Amount is negative')
    """

    MAX_REASONABLE = 1_000_000_000

    def validate(self, amount: Optional[float]) -> Tuple[bool, str]:
        if amount is None:
            return False, "Amount is empty"
        if amount < 0:
            return False, "Amount is negative"
        if amount == 0:
            return False, "Amount is zero"
        if amount > self.MAX_REASONABLE:
            return False, "Amount is unreasonably large"
        return True, "Valid amount"

    def is_valid(self, amount: Optional[float]) -> bool:
        valid, _ = self.validate(amount)
        return valid


class VendorValidator:
    """Rejects vendor candidates that are labels, numbers or greetings."""

    GREETING_RE = re.compile(
        r'^(?:dear|hello|hi|tisztelt|kedves|köszönjük|thank)\b', re.IGNORECASE
    )
    LABEL_RE = re.compile(r':\s*$')

    def __init__(self, min_length: Optional[int] = None) -> None:
        if min_length is None:
            min_length = get_config("extraction.min_vendor_length", 6)
        self.min_length = int(min_length)

    def validate(self, value: Optional[str]) -> Tuple[bool, str]:
        if not value or not value.strip():
            return False, "Vendor is empty"
        value = value.strip()
        if len(value) < self.min_length:
            return False, f"Vendor shorter than {self.min_length} characters"
        if not re.search(r'[^\W\d_]', value):
            return False, "Vendor has no letters"
        if sum(c.isdigit() for c in value) > len(value) / 2:
            return False, "Vendor is mostly numeric"
        if self.GREETING_RE.match(value):
            return False, "Vendor is a greeting line"
        if self.LABEL_RE.search(value):
            return False, "Vendor is a label"
        return True, "Valid vendor"

    def is_valid(self, value: Optional[str]) -> bool:
        valid, _ = self.validate(value)
        return valid
