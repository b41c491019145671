"""
Extraction Module for the Bill Extraction System.

This module provides functionality for:
    - Result data classes (canonical fields, dynamic values, bills)
    - Per-language, per-field pattern banks as fallback chains
    - Service category classification
    - Pattern-based field extraction
"""

from .extraction_result import (
    CANONICAL_FIELDS,
    Bill,
    BillSource,
    CanonicalFields,
    DynamicValue,
    ExtractionResult,
    ResultError,
    ValueKind,
)
from .patterns import FallbackChain, FieldRule, Match, chain_for
from .categories import CATEGORY_TAXONOMY, classify_category
from .extractor import FieldExtraction, PatternFieldExtractor

__all__ = [
    'CANONICAL_FIELDS',
    'Bill',
    'BillSource',
    'CanonicalFields',
    'DynamicValue',
    'ExtractionResult',
    'ResultError',
    'ValueKind',
    'FallbackChain',
    'FieldRule',
    'Match',
    'chain_for',
    'CATEGORY_TAXONOMY',
    'classify_category',
    'FieldExtraction',
    'PatternFieldExtractor',
]
