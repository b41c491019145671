"""
Post-Processing Module for the Bill Extraction System.

This module provides functionality for:
    - Amount parsing across locale separator conventions
    - Currency detection
    - Date normalization and validation
    - Cleaning and validating canonical fields
"""

from .normalizers import (
    AmountNormalizer,
    AmountSignals,
    DateNormalizer,
    correct_thousands_misread,
    detect_currency,
    parse_amount,
    to_date,
)
from .validators import AmountValidator, DateValidator, VendorValidator
from .processor import FieldPostProcessor

__all__ = [
    'AmountNormalizer',
    'AmountSignals',
    'DateNormalizer',
    'correct_thousands_misread',
    'detect_currency',
    'parse_amount',
    'to_date',
    'AmountValidator',
    'DateValidator',
    'VendorValidator',
    'FieldPostProcessor',
]
