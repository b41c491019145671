"""
Pattern Field Extractor Module.

This module provides the PatternFieldExtractor class that pulls the
canonical bill fields out of normalized document text.

Approach:
    1. Classify the document into the service taxonomy
    2. Run each field's fallback chain (document language first)
    3. Score amount candidates by their surrounding keywords
    4. When vendor or amount is still missing on a bill-like text, run
       the narrower direct fallback (vendor line, currency-adjacent number)
    5. Clean and validate the fields
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.postprocessor import (
    DateNormalizer,
    FieldPostProcessor,
    VendorValidator,
    detect_currency,
    parse_amount,
)
from .categories import CATEGORY_OTHER, classify_category, vendor_rules_for
from .extraction_result import CanonicalFields
from .patterns import (
    COMPANY_LINE_RULE,
    CURRENCY_ADJACENT_CHAIN,
    FallbackChain,
    Match,
    chain_for,
    has_bill_keyword,
    has_total_keyword,
)

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class FieldExtraction:
    """
    Output of one pattern extraction pass.

    Attributes:
        fields: Canonical fields with provenance
        matches: Per-field rule name and raw capture
        bill_keyword_present: Whether the text mentions any bill keyword
        warnings: Values dropped or flagged by post-processing
    """
    fields: CanonicalFields = field(default_factory=CanonicalFields)
    matches: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    bill_keyword_present: bool = False
    warnings: List[str] = field(default_factory=list)

    def record(self, name: str, match: Match, **extra: Any) -> None:
        self.matches[name] = {'rule': match.rule, 'raw': match.value, **extra}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fields': self.fields.to_dict(),
            'matches': dict(self.matches),
            'bill_keyword_present': self.bill_keyword_present,
            'warnings': list(self.warnings),
        }


class PatternFieldExtractor:
    """
    Regex-bank extractor for English and Hungarian bills.

    Attributes:
        context_window: Characters around an amount searched for keywords
        vendor_scan_lines: Leading lines searched by the vendor fallback
        min_vendor_length: Shortest accepted vendor line

    Example:
        >>> extractor = PatternFieldExtractor()
        >>> extraction = extractor.extract(text, "hu")
        >>> extraction.fields.amount
        45678.0
    """

    def __init__(
        self,
        context_window: Optional[int] = None,
        vendor_scan_lines: Optional[int] = None,
        min_vendor_length: Optional[int] = None
    ) -> None:
        self.context_window = int(context_window if context_window is not None
                                  else get_config("extraction.context_window", 50))
        self.vendor_scan_lines = int(vendor_scan_lines if vendor_scan_lines is not None
                                     else get_config("extraction.vendor_scan_lines", 10))
        self.min_vendor_length = int(min_vendor_length if min_vendor_length is not None
                                     else get_config("extraction.min_vendor_length", 6))

        self.date_normalizer = DateNormalizer()
        self.vendor_validator = VendorValidator(self.min_vendor_length)
        self.post_processor = FieldPostProcessor()

    def extract(self, text: str, language: str = "en") -> FieldExtraction:
        """
        Extract canonical fields from text.

        Args:
            text: Normalized document text.
            language: "en" or "hu"; its banks are tried first.

        Returns:
            FieldExtraction with fields, matches and keyword evidence.
        """
        extraction = FieldExtraction()
        if not text or not text.strip():
            logger.debug("Empty text, nothing to extract")
            return extraction

        fields = extraction.fields
        extraction.bill_keyword_present = has_bill_keyword(text)

        category = classify_category(text)
        fields.set_field('category', category, 'category.keywords')

        self._extract_amount(text, language, extraction)
        self._extract_date(text, language, 'due_date', extraction)
        self._extract_date(text, language, 'issue_date', extraction)
        self._extract_identifier(text, language, 'account_number', extraction)
        self._extract_identifier(text, language, 'invoice_number', extraction)
        self._extract_vendor(text, language, category, extraction)

        if extraction.bill_keyword_present:
            if fields.amount is None:
                self._fallback_amount(text, extraction)
            if fields.vendor is None:
                self._fallback_vendor(text, extraction)

        if fields.amount is not None:
            fields.set_field('currency', detect_currency(text, language), 'currency.detect')

        processed, warnings = self.post_processor.process(fields)
        extraction.fields = processed
        extraction.warnings.extend(warnings)

        logger.debug(
            f"Extracted {len(processed.populated_fields)} fields "
            f"({', '.join(processed.populated_fields)}) from {len(text)} chars"
        )
        return extraction

    # -------------------------------------------------------------------------
    # Amount
    # -------------------------------------------------------------------------

    def score_context(self, text: str, start: int, end: int) -> int:
        """
        Score an amount candidate by the keywords around it.

        Returns:
            2 with both a bill keyword and a total/due keyword in the
            window, 1 with one of them, 0 with neither.
        """
        window = text[max(0, start - self.context_window):end + self.context_window]
        return int(has_bill_keyword(window)) + int(has_total_keyword(window))

    def best_amount(self, text: str, chain: FallbackChain) -> Optional[Tuple[Match, float, int]]:
        """
        Pick the best-scoring non-zero amount among every hit of the chain.

        Ties are broken by the earlier position in the text.
        """
        best: Optional[Tuple[Match, float, int]] = None
        for match in chain.all_matches(text):
            value = parse_amount(match.value)
            if value <= 0:
                continue
            score = self.score_context(text, match.start, match.end)
            if (
                best is None
                or score > best[2]
                or (score == best[2] and match.start < best[0].start)
            ):
                best = (match, value, score)
        return best

    def _extract_amount(self, text: str, language: str, extraction: FieldExtraction) -> None:
        best = self.best_amount(text, chain_for('amount', language))
        if best is None:
            return
        match, value, score = best
        extraction.fields.set_field('amount', value, match.rule)
        extraction.record('amount', match, score=score)

    def _fallback_amount(self, text: str, extraction: FieldExtraction) -> None:
        best = self.best_amount(text, CURRENCY_ADJACENT_CHAIN)
        if best is None:
            return
        match, value, score = best
        extraction.fields.set_field('amount', value, match.rule)
        extraction.record('amount', match, score=score)
        logger.debug(f"Amount from currency-adjacent fallback: {value}")

    # -------------------------------------------------------------------------
    # Dates and identifiers
    # -------------------------------------------------------------------------

    def _extract_date(self, text: str, language: str, name: str, extraction: FieldExtraction) -> None:
        parsed: Dict[str, Any] = {}

        def accept(match: Match) -> bool:
            value = self.date_normalizer.parse(match.value, match.rule.split('.', 1)[0])
            if value is None:
                return False
            parsed['value'] = value
            return True

        match = chain_for(name, language).first_match(text, accept)
        if match is not None:
            extraction.fields.set_field(name, parsed['value'], match.rule)
            extraction.record(name, match)

    def _extract_identifier(self, text: str, language: str, name: str, extraction: FieldExtraction) -> None:
        match = chain_for(name, language).first_match(text, lambda m: any(c.isdigit() for c in m.value))
        if match is not None:
            extraction.fields.set_field(name, match.value, match.rule)
            extraction.record(name, match)

    # -------------------------------------------------------------------------
    # Vendor
    # -------------------------------------------------------------------------

    def _accept_vendor(self, match: Match) -> bool:
        return self.vendor_validator.is_valid(FieldPostProcessor.clean_name(match.value))

    def _extract_vendor(self, text: str, language: str, category: str, extraction: FieldExtraction) -> None:
        chain = chain_for('vendor', language)
        # A bare company line (an email signature) is only a vendor in a bill context
        if extraction.bill_keyword_present or extraction.fields.amount is not None:
            chain = chain + FallbackChain('vendor', (COMPANY_LINE_RULE,))
        if category != CATEGORY_OTHER:
            chain = chain + FallbackChain('vendor', vendor_rules_for(category))

        match = chain.first_match(text, self._accept_vendor)
        if match is not None:
            extraction.fields.set_field('vendor', match.value, match.rule)
            extraction.record('vendor', match)

    def _fallback_vendor(self, text: str, extraction: FieldExtraction) -> None:
        """First plausible non-numeric line among the leading lines."""
        offset = 0
        for index, line in enumerate(text.split('\n')):
            if index >= self.vendor_scan_lines:
                break
            candidate = line.strip()
            if candidate and self.vendor_validator.is_valid(candidate) and len(candidate) <= 80:
                start = offset + line.find(candidate)
                match = Match(value=candidate, rule='fallback.vendor.first_line',
                              start=start, end=start + len(candidate))
                extraction.fields.set_field('vendor', candidate, match.rule)
                extraction.record('vendor', match)
                logger.debug(f"Vendor from leading-line fallback: {candidate!r}")
                return
            offset += len(line) + 1
