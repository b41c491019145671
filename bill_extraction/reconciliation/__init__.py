"""
Reconciliation Module for the Bill Extraction System.

This module provides functionality for:
    - Immutable dynamic field schema snapshots
    - Mapping canonical fields onto caller-defined fields
    - Deterministic tie-breaking, bill merging and deduplication
    - Confidence scoring and extraction strategies
"""

from .schema import EMPTY_SCHEMA, FieldSchemaEntry, FieldType, SchemaSnapshot
from .mapping import apply_dynamic_fields, canonical_slot_for, coerce_value, is_placeholder, map_to_schema
from .merge import bills_match, choose_value, deduplicate_bills, merge_bills, merge_fields
from .confidence import confidence_breakdown, stem_confidence, weighted_confidence
from .strategies import (
    ExtractionStrategy,
    PatternBasedStrategy,
    SchemaAwareStrategy,
    StrategyOutcome,
    select_strategy,
)

__all__ = [
    'EMPTY_SCHEMA',
    'FieldSchemaEntry',
    'FieldType',
    'SchemaSnapshot',
    'apply_dynamic_fields',
    'canonical_slot_for',
    'coerce_value',
    'is_placeholder',
    'map_to_schema',
    'bills_match',
    'choose_value',
    'deduplicate_bills',
    'merge_bills',
    'merge_fields',
    'confidence_breakdown',
    'stem_confidence',
    'weighted_confidence',
    'ExtractionStrategy',
    'PatternBasedStrategy',
    'SchemaAwareStrategy',
    'StrategyOutcome',
    'select_strategy',
]
