"""
Data Normalizers Module.

This module provides normalization functions for:
    - Monetary amounts written with any mix of thousands/decimal separators
    - Currency detection
    - Hungarian and English date formats
"""

import re
from datetime import date, datetime
from typing import NamedTuple, Optional

from dateutil import parser as date_parser

from config import get_config
from bill_extraction.utils.logger import get_logger
from .validators import DateValidator

# Initialize module logger
logger = get_logger(__name__)


# =============================================================================
# AMOUNTS
# =============================================================================

_NON_AMOUNT_RE = re.compile(r'[^\d.,\s]')
_DOT_THOUSANDS_RE = re.compile(r'\d\.\d{3}(?!\d)')
_SPACE_THOUSANDS_RE = re.compile(r'\d\s+\d{3}(?!\d)')
_COMMA_DECIMAL_RE = re.compile(r',(\d{1,2})$')
_DOT_GROUP_RE = re.compile(r'\.(?=\d{3}(?!\d))')
_GROUP_SPACE_RE = re.compile(r'(?<=\d)\s+(?=\d)')

MISREAD_CEILING = 100
MISREAD_MIN_DIGITS = 5


class AmountSignals(NamedTuple):
    """Separator evidence collected from a cleaned amount string."""
    dot_thousands: bool
    space_thousands: bool
    comma_decimal: bool
    digit_count: int

    @property
    def has_thousands(self) -> bool:
        return self.dot_thousands or self.space_thousands


def clean_amount_text(text: str) -> str:
    """Keep digits, dots, commas and whitespace; trim stray separators at the ends."""
    if not text:
        return ""
    cleaned = _NON_AMOUNT_RE.sub('', text)
    return cleaned.strip(' \t\r\n.,')


def amount_signals(cleaned: str) -> AmountSignals:
    return AmountSignals(
        dot_thousands=bool(_DOT_THOUSANDS_RE.search(cleaned)),
        space_thousands=bool(_SPACE_THOUSANDS_RE.search(cleaned)),
        comma_decimal=bool(_COMMA_DECIMAL_RE.search(cleaned)),
        digit_count=sum(1 for c in cleaned if c.isdigit()),
    )


def correct_thousands_misread(
    value: float,
    signals: AmountSignals,
    ceiling: float = MISREAD_CEILING,
    min_digits: int = MISREAD_MIN_DIGITS
) -> float:
    """
    Undo a thousands separator that was read as a decimal point.

    The value is multiplied by 1000 when it is below ``ceiling`` although
    the source had at least ``min_digits`` digits and a thousands signal
    without any decimal signal.
    """
    if (
        value < ceiling
        and signals.digit_count >= min_digits
        and signals.has_thousands
        and not signals.comma_decimal
    ):
        logger.debug(f"Correcting thousands misread: {value} -> {value * 1000}")
        return value * 1000
    return value


def parse_amount(
    text: str,
    ceiling: float = MISREAD_CEILING,
    min_digits: int = MISREAD_MIN_DIGITS
) -> float:
    """
    Parse a monetary amount written in Hungarian, European or English style.

    Args:
        text: Substring believed to hold an amount (currency marks allowed).
        ceiling: Upper bound for the thousands-misread correction.
        min_digits: Minimum digit count for the thousands-misread correction.

    Returns:
        The amount, or 0.0 when nothing parses.

    Example:
        >>> parse_amount("1.234.567")
        1234567.0
        >>> parse_amount("12 345,67 Ft")
        12345.67
        >>> parse_amount("$1,234.56")
        1234.56
    """
    cleaned = clean_amount_text(text)
    if not cleaned or not any(c.isdigit() for c in cleaned):
        return 0.0

    signals = amount_signals(cleaned)
    value = cleaned

    if signals.has_thousands:
        value = _GROUP_SPACE_RE.sub('', value)
        value = _DOT_GROUP_RE.sub('', value)
        value = _COMMA_DECIMAL_RE.sub(r'.\1', value)
    elif signals.comma_decimal:
        value = _COMMA_DECIMAL_RE.sub(r'.\1', value)

    value = value.replace(',', '').strip()

    try:
        amount = float(value)
    except ValueError:
        logger.debug(f"Could not parse amount: {text!r}")
        return 0.0

    return correct_thousands_misread(amount, signals, ceiling, min_digits)


def detect_currency(text: str, language: Optional[str] = None) -> str:
    """
    Pick the currency code for a document.

    HUF for Hungarian documents or any Ft/HUF/forint mention, then EUR and
    GBP by symbol or code, and USD otherwise.
    """
    text = text or ""
    if language == "hu" or re.search(r'\b(?:Ft|HUF)\b|forint', text, re.IGNORECASE):
        return "HUF"
    if '€' in text or re.search(r'\bEUR\b', text):
        return "EUR"
    if '£' in text or re.search(r'\bGBP\b', text):
        return "GBP"
    return "USD"


class AmountNormalizer:
    """
    Configured front end for the amount parser.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.normalize("45 678 Ft")
        45678.0
    """

    def __init__(self) -> None:
        self.ceiling = float(get_config("postprocessing.amount.misread_ceiling", MISREAD_CEILING))
        self.min_digits = int(get_config("postprocessing.amount.misread_min_digits", MISREAD_MIN_DIGITS))

    def normalize(self, amount_str: str) -> float:
        return parse_amount(amount_str, self.ceiling, self.min_digits)


# =============================================================================
# DATES
# =============================================================================

HUNGARIAN_MONTHS = {
    'januar': 1, 'februar': 2, 'marcius': 3, 'aprilis': 4,
    'majus': 5, 'junius': 6, 'julius': 7, 'augusztus': 8,
    'szeptember': 9, 'oktober': 10, 'november': 11, 'december': 12,
}

_HU_ACCENTS = str.maketrans('áéíóöőúüű', 'aeiooouuu')


class DateNormalizer:
    """
    Normalizes locale-formatted date strings to calendar dates.

    Hungarian dates are year-first (``2023.06.01.``, ``2023. június 1.``),
    with ``01.06.2023`` also accepted. English numeric dates are
    month-first (``06/01/2023``); written-out months go through dateutil.

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.normalize("2023.06.01.", "hu")
        '2023-06-01'
        >>> normalizer.normalize("06/01/2023", "en")
        '2023-06-01'
    """

    HU_YEAR_FIRST = re.compile(r'\b(\d{4})\s*[.\-/]\s*(\d{1,2})\s*[.\-/]\s*(\d{1,2})\b')
    HU_MONTH_NAME = re.compile(r'\b(\d{4})\.?\s*([A-Za-zÁÉÍÓÖŐÚÜŰáéíóöőúüű]+)\s+(\d{1,2})\b')
    DAY_FIRST_DOTTED = re.compile(r'\b(\d{1,2})\.\s*(\d{1,2})\.\s*(\d{4})\b')
    EN_NUMERIC = re.compile(r'\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})\b')
    ISO_DATE = re.compile(r'\b(\d{4})-(\d{1,2})-(\d{1,2})\b')
    EN_MONTH_NAME = re.compile(
        r'\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}'
        r'|\d{1,2}(?:st|nd|rd|th)?\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?,?\s+\d{4})\b',
        re.IGNORECASE
    )

    def __init__(self) -> None:
        """Initialize the date normalizer with configuration."""
        self.output_format = get_config("postprocessing.date.output_format", "%Y-%m-%d")
        self.validator = DateValidator()

    def parse(self, text: str, language: str = "en") -> Optional[date]:
        """
        Find and parse the first date in ``text``.

        Args:
            text: Captured date string or a longer text.
            language: "hu" or "en"; decides the pattern order.

        Returns:
            The date, or None when nothing valid is found.
        """
        if not text:
            return None

        if language == "hu":
            parsers = (self._parse_hu_year_first, self._parse_hu_month_name,
                       self._parse_day_first, self._parse_en_month_name)
        else:
            parsers = (self._parse_iso, self._parse_en_numeric,
                       self._parse_en_month_name, self._parse_hu_year_first)

        for parse in parsers:
            parsed = parse(text)
            if parsed is not None and self.validator.is_valid_date(parsed):
                return parsed

        logger.debug(f"Could not parse date: {text!r}")
        return None

    def normalize(self, text: str, language: str = "en") -> Optional[str]:
        """Parse a date and format it with the configured output format."""
        parsed = self.parse(text, language)
        return parsed.strftime(self.output_format) if parsed else None

    @staticmethod
    def _build(year: str, month: str, day: str) -> Optional[date]:
        try:
            return date(int(year), int(month), int(day))
        except ValueError:
            return None

    def _parse_hu_year_first(self, text: str) -> Optional[date]:
        for match in self.HU_YEAR_FIRST.finditer(text):
            parsed = self._build(*match.groups())
            if parsed:
                return parsed
        return None

    def _parse_hu_month_name(self, text: str) -> Optional[date]:
        for match in self.HU_MONTH_NAME.finditer(text):
            year, month_name, day = match.groups()
            month = HUNGARIAN_MONTHS.get(month_name.lower().translate(_HU_ACCENTS))
            if month:
                parsed = self._build(year, month, day)
                if parsed:
                    return parsed
        return None

    def _parse_day_first(self, text: str) -> Optional[date]:
        for match in self.DAY_FIRST_DOTTED.finditer(text):
            day, month, year = match.groups()
            parsed = self._build(year, month, day)
            if parsed:
                return parsed
        return None

    def _parse_iso(self, text: str) -> Optional[date]:
        match = self.ISO_DATE.search(text)
        return self._build(*match.groups()) if match else None

    def _parse_en_numeric(self, text: str) -> Optional[date]:
        for match in self.EN_NUMERIC.finditer(text):
            month, day, year = match.groups()
            parsed = self._build(year, month, day)
            if parsed:
                return parsed
        return None

    def _parse_en_month_name(self, text: str) -> Optional[date]:
        match = self.EN_MONTH_NAME.search(text)
        if not match:
            return None
        candidate = re.sub(r'(\d+)(st|nd|rd|th)', r'\1', match.group(1), flags=re.IGNORECASE)
        try:
            return date_parser.parse(candidate, dayfirst=False).date()
        except (ValueError, OverflowError):
            return None


def to_date(value) -> Optional[date]:
    """Coerce a date, datetime or ISO string to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None
