"""
Extraction Orchestrator Module.

This module drives one extraction run through a fixed sequence of states:

    START -> DECODING_SOURCE -> NORMALIZING -> EXTRACTING_FIELDS
          -> RECONCILING -> DONE

DECODING_SOURCE is only entered for binary documents. Every run ends in
DONE with either a successful result or a typed failure; only invalid
input escapes to the caller as an exception.

Example:
    >>> orchestrator = ExtractionOrchestrator()
    >>> result = orchestrator.run(ExtractionContext(raw_text=body, language="en"))
    >>> result.success, result.bill
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.utils.helpers import content_fingerprint, excerpt
from bill_extraction.utils.exceptions import (
    BillExtractionError,
    DecodeError,
    DecodeTimeoutError,
    ErrorKind,
    InternalError,
    InvalidInputError,
    LowConfidenceError,
    SchemaUnavailableError,
)
from bill_extraction.input_handler.binary_normalizer import RawDocument, decode_plain_text, normalize_document
from bill_extraction.input_handler.pdf_decoder import PDFDecoder
from bill_extraction.language.detection import LANGUAGE_AUTO, LANGUAGE_HU, detect_language
from bill_extraction.language.encoding import has_mojibake, repair_mojibake
from bill_extraction.language.stemming import StemAnalysis, StemDictionary, analyze_stems
from bill_extraction.extraction.extraction_result import ExtractionResult, ResultError
from bill_extraction.reconciliation.schema import EMPTY_SCHEMA, SchemaSnapshot
from bill_extraction.reconciliation.strategies import StrategyOutcome, select_strategy
from .cache import ResultCache
from .context import ExtractionContext
from .providers import FieldSchemaProvider

logger = get_logger(__name__)


class PipelineState(str, Enum):
    """States of one extraction run."""
    START = "start"
    DECODING_SOURCE = "decoding_source"
    NORMALIZING = "normalizing"
    EXTRACTING_FIELDS = "extracting_fields"
    RECONCILING = "reconciling"
    DONE = "done"


@dataclass(frozen=True)
class PipelineSettings:
    """
    Configuration snapshot for the orchestrator.

    Frozen at construction so a config reload never changes a run in
    flight.
    """
    timeout_seconds: float = 30.0
    cache_size: int = 64
    debug_excerpt_chars: int = 500
    default_language: str = LANGUAGE_AUTO
    detection_threshold: float = 0.15
    stemming_enabled: bool = True
    required_stems: Tuple[str, ...] = ("szamla", "fizet", "osszeg", "hatarido")
    keyword_stems: Tuple[str, ...] = ("szamla", "fizet", "dij", "befizet")
    text_encodings: Tuple[str, ...] = ("utf-8", "iso-8859-2", "windows-1250")

    @classmethod
    def from_config(cls) -> 'PipelineSettings':
        defaults = cls()
        return cls(
            timeout_seconds=float(get_config("pipeline.timeout_seconds", defaults.timeout_seconds)),
            cache_size=int(get_config("pipeline.cache_size", defaults.cache_size)),
            debug_excerpt_chars=int(get_config("pipeline.debug_excerpt_chars", defaults.debug_excerpt_chars)),
            default_language=get_config("language.default", defaults.default_language),
            detection_threshold=float(get_config("language.detection_threshold", defaults.detection_threshold)),
            stemming_enabled=bool(get_config("stemming.enabled", defaults.stemming_enabled)),
            required_stems=tuple(get_config("stemming.required_stems", defaults.required_stems)),
            keyword_stems=tuple(get_config("stemming.keyword_stems", defaults.keyword_stems)),
            text_encodings=tuple(get_config("input.text_encodings", defaults.text_encodings)),
        )


@dataclass
class _Run:
    """Mutable state of a single run; never shared between runs."""
    context: ExtractionContext
    deadline: float
    states: List[PipelineState] = field(default_factory=list)
    snapshot: SchemaSnapshot = EMPTY_SCHEMA
    document: Optional[RawDocument] = None
    text: str = ""
    language: str = "en"
    analysis: Optional[StemAnalysis] = None
    outcome: Optional[StrategyOutcome] = None
    decode_failure: Optional[DecodeError] = None
    result: ExtractionResult = field(default_factory=ExtractionResult)

    def enter(self, state: PipelineState) -> None:
        if state in self.states:
            raise InternalError(state.value, "state re-entered")
        self.states.append(state)
        logger.debug(f"Pipeline state -> {state.value}")

    @property
    def current(self) -> PipelineState:
        return self.states[-1] if self.states else PipelineState.START

    @property
    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())


class ExtractionOrchestrator:
    """
    Runs the extraction pipeline for one context at a time.

    Collaborators are injected; anything not given is built from the
    configuration. The orchestrator owns an LRU result cache.

    Attributes:
        settings: Frozen pipeline settings
        decoder: PDF decoder
        stem_dictionary: Hungarian stem dictionary
        schema_provider: Optional source of caller field schemas
        cache: Result cache
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        decoder: Optional[PDFDecoder] = None,
        stem_dictionary: Optional[StemDictionary] = None,
        schema_provider: Optional[FieldSchemaProvider] = None,
        cache_size: Optional[int] = None
    ) -> None:
        self.settings = settings or PipelineSettings.from_config()
        self.decoder = decoder or PDFDecoder()
        self.stem_dictionary = stem_dictionary or StemDictionary()
        self.schema_provider = schema_provider
        self.cache = ResultCache(self.settings.cache_size if cache_size is None else cache_size)

        logger.debug(
            f"ExtractionOrchestrator initialized (timeout={self.settings.timeout_seconds}s, "
            f"cache_size={self.cache.maxsize})"
        )

    def run(self, context: ExtractionContext) -> ExtractionResult:
        """
        Extract bills from one context.

        Args:
            context: Input text or document plus options.

        Returns:
            ExtractionResult; failures are reported in ``result.error``.

        Raises:
            InvalidInputError: If the context violates its invariants.
        """
        run = _Run(context=context, deadline=time.monotonic() + self.settings.timeout_seconds)
        run.enter(PipelineState.START)
        self._start(run)

        key = self._cache_key(run) if self.cache.enabled else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Result cache hit {key[:12]}")
                return cached

        self._execute(run)
        result = run.result

        # Timeouts and internal failures depend on the run, not on the input
        if key is not None and run.decode_failure is None and not self._internal_failure(result):
            self.cache.put(key, result)
        return result

    @staticmethod
    def _internal_failure(result: ExtractionResult) -> bool:
        return result.error is not None and result.error.kind == ErrorKind.INTERNAL_ERROR

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _start(self, run: _Run) -> None:
        context = run.context
        context.validate()

        if context.is_document:
            raw = context.raw_document
            if isinstance(raw, RawDocument):
                run.document = raw
            else:
                run.document = normalize_document(raw, file_name=context.file_name)

        run.snapshot = self._resolve_schema(run)

    def _resolve_schema(self, run: _Run) -> SchemaSnapshot:
        context = run.context
        if context.user_field_schema is not None:
            if isinstance(context.user_field_schema, SchemaSnapshot):
                return context.user_field_schema
            try:
                return SchemaSnapshot.from_entries(context.user_field_schema)
            except (TypeError, ValueError) as e:
                self._schema_warning(run, SchemaUnavailableError(context.user_id, str(e)))
                return EMPTY_SCHEMA

        if self.schema_provider is None:
            return EMPTY_SCHEMA

        try:
            entries = self.schema_provider.fetch_field_schema(context.user_id)
            return SchemaSnapshot.from_entries(entries)
        except SchemaUnavailableError as e:
            self._schema_warning(run, e)
        except Exception as e:
            self._schema_warning(run, SchemaUnavailableError(context.user_id, str(e)))
        return EMPTY_SCHEMA

    @staticmethod
    def _schema_warning(run: _Run, error: SchemaUnavailableError) -> None:
        logger.warning(f"Continuing without field schema: {error}")
        run.result.add_warning(f"SchemaUnavailable: {error}")

    def _execute(self, run: _Run) -> None:
        try:
            if run.document is not None:
                run.enter(PipelineState.DECODING_SOURCE)
                if not self._decode(run):
                    return
            else:
                run.text = run.context.raw_text

            run.enter(PipelineState.NORMALIZING)
            self._normalize(run)

            run.enter(PipelineState.EXTRACTING_FIELDS)
            self._extract(run)

            run.enter(PipelineState.RECONCILING)
            self._reconcile(run)

        except InvalidInputError:
            raise
        except BillExtractionError as e:
            logger.error(f"Extraction failed in {run.current.value}: {e}")
            self._fail(run, e)
        except Exception as e:
            logger.exception(f"Unexpected error in {run.current.value}")
            self._fail(run, InternalError(run.current.value, f"{type(e).__name__}: {e}"))
        finally:
            run.enter(PipelineState.DONE)
            if run.context.debug:
                run.result.debug_trace = self._debug_trace(run)
            self._log_summary(run)

    def _decode(self, run: _Run) -> bool:
        """Decode the document into run.text. False ends the run."""
        document = run.document

        if not document.is_pdf:
            run.text = decode_plain_text(document.data, self.settings.text_encodings)
            return True

        try:
            decoded = self.decoder.decode(document.data, timeout=run.remaining)
        except DecodeError as e:
            logger.error(f"Could not decode {document.file_name or 'document'}: {e}")
            self._fail(run, e)
            return False

        run.result.decode_tier = decoded.tier
        run.text = decoded.text

        for page_number in sorted(decoded.page_errors):
            run.result.add_warning(f"Page {page_number} failed: {decoded.page_errors[page_number]}")

        if decoded.timed_out:
            completed = sum(1 for page in decoded.pages if not page.failed)
            run.decode_failure = DecodeTimeoutError(self.settings.timeout_seconds, completed)
            logger.warning(f"Decoding timed out; extracting from {completed} completed page(s)")
        elif not decoded.has_text:
            logger.warning(f"No text decoded from {document.file_name or 'document'}")
        return True

    def _normalize(self, run: _Run) -> None:
        if has_mojibake(run.text):
            run.text = repair_mojibake(run.text)
            logger.debug("Repaired mis-decoded UTF-8 text")

        language = run.context.language or self.settings.default_language
        if language == LANGUAGE_AUTO:
            language = detect_language(run.text, self.settings.detection_threshold)
            logger.debug(f"Detected language: {language}")
        run.language = language

        stemming = run.context.apply_stemming
        if stemming is None:
            stemming = self.settings.stemming_enabled
        if language == LANGUAGE_HU and stemming:
            run.analysis = analyze_stems(
                run.text,
                self.stem_dictionary,
                self.settings.required_stems,
                self.settings.keyword_stems,
            )

    def _extract(self, run: _Run) -> None:
        strategy = select_strategy(run.snapshot)
        run.outcome = strategy.extract(run.text, run.language, run.snapshot, run.analysis)

    def _reconcile(self, run: _Run) -> None:
        outcome = run.outcome
        result = run.result
        result.confidence = outcome.confidence

        for warning in outcome.extraction.warnings:
            result.add_warning(warning)

        if outcome.bill is not None:
            outcome.bill.source = run.context.source
            result.bills = [outcome.bill]

        if run.decode_failure is not None:
            result.success = False
            result.error = ResultError.from_exception(run.decode_failure)
        elif outcome.success:
            result.success = True
            result.error = None
        else:
            result.success = False
            result.error = ResultError.from_exception(self._low_confidence(outcome))

    @staticmethod
    def _low_confidence(outcome: StrategyOutcome) -> LowConfidenceError:
        if outcome.bill is None or not outcome.bill.fields.has_vendor_or_amount:
            return LowConfidenceError(outcome.confidence, outcome.threshold, "no vendor or amount found")
        return LowConfidenceError(outcome.confidence, outcome.threshold)

    @staticmethod
    def _fail(run: _Run, error: BillExtractionError) -> None:
        run.result.success = False
        run.result.error = ResultError.from_exception(error)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _cache_key(self, run: _Run) -> str:
        context = run.context
        if run.document is not None:
            payload = run.document.data
            kind = run.document.source_kind.value
        else:
            payload = context.raw_text
            kind = "text"
        stemming = context.apply_stemming
        if stemming is None:
            stemming = self.settings.stemming_enabled
        return content_fingerprint(
            kind,
            payload,
            context.language or self.settings.default_language,
            "stem" if stemming else "nostem",
            "debug" if context.debug else "nodebug",
            run.snapshot.fingerprint,
            context.message_id,
            context.attachment_id,
            context.file_name,
        )

    def _debug_trace(self, run: _Run) -> Dict[str, Any]:
        outcome = run.outcome
        return {
            'text_excerpt': excerpt(run.text, self.settings.debug_excerpt_chars),
            'states': [state.value for state in run.states],
            'language': run.language,
            'strategy': outcome.method if outcome else None,
            'matches': dict(outcome.extraction.matches) if outcome else {},
            'confidence_breakdown': dict(outcome.breakdown) if outcome else {},
            'decode_tier': run.result.decode_tier,
            'stem_analysis': run.analysis.to_dict() if run.analysis else None,
        }

    @staticmethod
    def _log_summary(run: _Run) -> None:
        result = run.result
        source = run.context.file_name or run.context.message_id or "input"
        if result.success:
            logger.info(
                f"Extracted {len(result.bills)} bill(s) from {source} "
                f"(confidence={result.confidence:.2f})"
            )
        else:
            kind = result.error.kind.value if result.error else "unknown"
            logger.info(
                f"No confident bill from {source}: {kind} "
                f"(confidence={result.confidence:.2f}, bills={len(result.bills)})"
            )
