"""
Confidence Scoring.

Two scores are used:
    - weighted_confidence: fixed weights over populated canonical fields
    - stem_confidence: 0.3 * stem-keyword-present + 0.5 * stem coverage,
      used on the Hungarian stemming path
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from bill_extraction.extraction.extraction_result import CanonicalFields
from bill_extraction.extraction.categories import CATEGORY_OTHER
from bill_extraction.language.stemming import StemAnalysis

DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType({
    'vendor': 0.2,
    'amount': 0.2,
    'due_date': 0.15,
    'issue_date': 0.15,
    'account_number': 0.1,
    'invoice_number': 0.1,
    'category': 0.1,
})

STEM_KEYWORD_WEIGHT = 0.3
STEM_COVERAGE_WEIGHT = 0.5


def confidence_breakdown(fields: CanonicalFields, weights: Optional[Mapping[str, float]] = None) -> Dict[str, float]:
    """
    Weight contributed by each canonical field.

    The category only counts when it is not "other".
    """
    weights = DEFAULT_WEIGHTS if weights is None else weights
    breakdown = {}
    for name, weight in weights.items():
        populated = fields.is_populated(name)
        if name == 'category' and fields.category == CATEGORY_OTHER:
            populated = False
        breakdown[name] = float(weight) if populated else 0.0
    return breakdown


def weighted_confidence(fields: CanonicalFields, weights: Optional[Mapping[str, float]] = None) -> float:
    """
    Weighted sum over populated canonical fields, clamped to [0, 1].

    Example:
        >>> fields = CanonicalFields(vendor="Power Utilities Inc.", amount=124.56)
        >>> weighted_confidence(fields)
        0.4
    """
    total = sum(confidence_breakdown(fields, weights).values())
    return round(min(1.0, max(0.0, total)), 4)


def stem_breakdown(analysis: StemAnalysis) -> Dict[str, float]:
    return {
        'stem_keyword': STEM_KEYWORD_WEIGHT if analysis.keyword_present else 0.0,
        'stem_coverage': STEM_COVERAGE_WEIGHT * analysis.coverage,
    }


def stem_confidence(analysis: StemAnalysis) -> float:
    """0.3 when a bill keyword stem is present, plus 0.5 times the stem coverage."""
    return round(min(1.0, sum(stem_breakdown(analysis).values())), 4)
