"""
Extraction Strategies.

One ExtractionStrategy interface with two variants:
    - PatternBasedStrategy: canonical fields only
    - SchemaAwareStrategy: canonical fields mapped onto the caller's schema

Both score with the weighted field confidence, or with the stem
confidence when a StemAnalysis is supplied (Hungarian stemming path).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.extraction.extraction_result import Bill, CanonicalFields, DynamicValue
from bill_extraction.extraction.extractor import FieldExtraction, PatternFieldExtractor
from bill_extraction.language.stemming import StemAnalysis
from .confidence import (
    DEFAULT_WEIGHTS,
    confidence_breakdown,
    stem_breakdown,
    stem_confidence,
    weighted_confidence,
)
from .mapping import map_to_schema
from .schema import SchemaSnapshot

logger = get_logger(__name__)

# Slots that do not count as "something was found" on their own
_DERIVED_SLOTS = ('category', 'currency')


@dataclass
class StrategyOutcome:
    """
    Result of one strategy run.

    Attributes:
        bill: Best-effort bill, None when nothing was found
        extraction: Raw pattern extraction
        confidence: Score in [0, 1]
        threshold: Minimum confidence for success
        breakdown: Per-component confidence contributions
        method: Strategy name
    """
    bill: Optional[Bill]
    extraction: FieldExtraction
    confidence: float = 0.0
    threshold: float = 0.2
    breakdown: Dict[str, float] = field(default_factory=dict)
    method: str = "pattern"

    @property
    def success(self) -> bool:
        return (
            self.bill is not None
            and self.bill.fields.has_vendor_or_amount
            and self.confidence >= self.threshold
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'confidence': self.confidence,
            'threshold': self.threshold,
            'breakdown': dict(self.breakdown),
            'success': self.success,
        }


def _found_anything(fields: CanonicalFields) -> bool:
    return any(name not in _DERIVED_SLOTS for name in fields.populated_fields)


class ExtractionStrategy(ABC):
    """
    Base class for extraction strategies.

    Attributes:
        extractor: Pattern extractor shared by the strategy
        weights: Field weights for the weighted confidence
        threshold: Success threshold on the weighted path
        stem_threshold: Success threshold on the stemming path
    """

    name = "base"

    def __init__(
        self,
        extractor: Optional[PatternFieldExtractor] = None,
        weights: Optional[Mapping[str, float]] = None,
        threshold: Optional[float] = None,
        stem_threshold: Optional[float] = None
    ) -> None:
        self.extractor = extractor or PatternFieldExtractor()
        self.weights = dict(weights if weights is not None
                            else get_config("reconciliation.weights", dict(DEFAULT_WEIGHTS)))
        self.threshold = float(threshold if threshold is not None
                               else get_config("reconciliation.schema_threshold", 0.2))
        self.stem_threshold = float(stem_threshold if stem_threshold is not None
                                    else get_config("reconciliation.stem_threshold", 0.3))

    @abstractmethod
    def map_fields(self, fields: CanonicalFields, snapshot: Optional[SchemaSnapshot]) -> Dict[str, DynamicValue]:
        """Produce the dynamic fields for a bill."""

    def extract(
        self,
        text: str,
        language: str,
        snapshot: Optional[SchemaSnapshot] = None,
        analysis: Optional[StemAnalysis] = None
    ) -> StrategyOutcome:
        """
        Extract, map and score a document text.

        Args:
            text: Normalized document text.
            language: Resolved document language.
            snapshot: Schema for this invocation.
            analysis: Stem analysis; selects the stemming confidence path.

        Returns:
            StrategyOutcome with the best-effort bill.
        """
        extraction = self.extractor.extract(text, language)
        fields = extraction.fields

        if analysis is not None:
            breakdown = stem_breakdown(analysis)
            confidence = stem_confidence(analysis)
            threshold = self.stem_threshold
        else:
            breakdown = confidence_breakdown(fields, self.weights)
            confidence = weighted_confidence(fields, self.weights)
            threshold = self.threshold

        bill = None
        if _found_anything(fields):
            bill = Bill(
                fields=fields,
                dynamic_fields=self.map_fields(fields, snapshot),
                extraction_method=self.name,
                language=language,
            )

        outcome = StrategyOutcome(
            bill=bill,
            extraction=extraction,
            confidence=confidence,
            threshold=threshold,
            breakdown=breakdown,
            method=self.name,
        )
        logger.debug(
            f"{self.name} strategy: confidence={confidence:.2f} "
            f"threshold={threshold:.2f} success={outcome.success}"
        )
        return outcome


class PatternBasedStrategy(ExtractionStrategy):
    """Canonical fields only; no dynamic schema."""

    name = "pattern"

    def map_fields(self, fields: CanonicalFields, snapshot: Optional[SchemaSnapshot]) -> Dict[str, DynamicValue]:
        return {}


class SchemaAwareStrategy(ExtractionStrategy):
    """Canonical fields mapped onto the caller's field schema."""

    name = "schema"

    def map_fields(self, fields: CanonicalFields, snapshot: Optional[SchemaSnapshot]) -> Dict[str, DynamicValue]:
        return map_to_schema(fields, snapshot)


def select_strategy(
    snapshot: Optional[SchemaSnapshot],
    extractor: Optional[PatternFieldExtractor] = None,
    **kwargs: Any
) -> ExtractionStrategy:
    """Schema-aware when the snapshot has enabled entries, pattern-based otherwise."""
    if snapshot and snapshot.enabled_entries():
        return SchemaAwareStrategy(extractor, **kwargs)
    return PatternBasedStrategy(extractor, **kwargs)
