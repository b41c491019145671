"""
Language Module for the Bill Extraction System.

This module provides functionality for:
    - Repairing mis-decoded Hungarian text
    - Accent normalization, tokenization and dictionary stemming
    - Hungarian/English language detection
"""

from .encoding import repair_mojibake, has_mojibake
from .stemming import (
    StemDictionary,
    StemAnalysis,
    analyze_stems,
    normalize_hungarian,
    tokenize,
)
from .detection import (
    detect_language,
    looks_hungarian_bill,
    LANGUAGE_EN,
    LANGUAGE_HU,
    LANGUAGE_AUTO,
    SUPPORTED_LANGUAGES,
)
from .stems import HUNGARIAN_STEMS

__all__ = [
    'repair_mojibake',
    'has_mojibake',
    'StemDictionary',
    'StemAnalysis',
    'analyze_stems',
    'normalize_hungarian',
    'tokenize',
    'detect_language',
    'looks_hungarian_bill',
    'LANGUAGE_EN',
    'LANGUAGE_HU',
    'LANGUAGE_AUTO',
    'SUPPORTED_LANGUAGES',
    'HUNGARIAN_STEMS',
]
