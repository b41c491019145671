import json
from datetime import date

import pytest
import yaml

from bill_extraction.extraction import ExtractionResult
from bill_extraction.input_handler import DecodeOutcome, RawDocument, SourceKind
from bill_extraction.layout import failed_page, text_only_page
from bill_extraction.pipeline import (
    ExtractionContext,
    ExtractionOrchestrator,
    PipelineSettings,
    PipelineState,
    ResultCache,
    StaticSchemaProvider,
    YamlSchemaProvider,
)
from bill_extraction.reconciliation import SchemaSnapshot
from bill_extraction.utils.exceptions import (
    DecodeError,
    ErrorKind,
    InvalidInputError,
    SchemaUnavailableError,
)


PDF_STUB_BYTES = b"%PDF-1.4\n%%EOF"

HU_SCHEMA = [
    {"name": "total_amount", "fieldType": "currency"},
    {"name": "szolgaltato", "matchPattern": "vendor"},
    {"name": "hatarido", "fieldType": "date", "matchPattern": "due_date"},
    {"name": "notes", "isEnabled": False},
]


class StubDecoder:
    """Decoder returning a fixed outcome (or raising) and recording budgets."""

    def __init__(self, outcome=None, error=None):
        self.outcome = outcome
        self.error = error
        self.budgets = []

    def decode(self, data, timeout=None):
        self.budgets.append(timeout)
        if self.error is not None:
            raise self.error
        return self.outcome


class ExplodingDictionary:
    def find_stem(self, token):
        raise RuntimeError("stem index corrupted")


@pytest.fixture
def orchestrator():
    return ExtractionOrchestrator()


# =============================================================================
# CONTEXT
# =============================================================================

class TestContext:

    @pytest.mark.parametrize("kwargs", [
        {},
        {"raw_text": "text", "raw_document": b"%PDF-1.4"},
        {"raw_text": 123},
        {"raw_document": "not bytes"},
        {"raw_text": "text", "language": "de"},
    ])
    def test_invalid_contexts(self, kwargs):
        with pytest.raises(InvalidInputError):
            ExtractionContext(**kwargs).validate()

    def test_source(self):
        context = ExtractionContext(raw_document=b"%PDF-1.4", attachment_id="a1", file_name="bill.pdf")
        assert context.is_document
        assert context.source.to_dict() == {
            "type": "pdf", "message_id": None, "attachment_id": "a1", "file_name": "bill.pdf",
        }
        assert ExtractionContext(raw_text="x", message_id="m1").source.type == "email"


# =============================================================================
# PROVIDERS
# =============================================================================

class TestProviders:

    def test_static_list(self):
        entries = StaticSchemaProvider(HU_SCHEMA).fetch_field_schema("anyone")
        assert [e.name for e in entries] == ["total_amount", "szolgaltato", "hatarido", "notes"]

    def test_static_per_user(self):
        provider = StaticSchemaProvider({"users": {"u1": [{"name": "total_amount"}]}})
        assert [e.name for e in provider.fetch_field_schema("u1")] == ["total_amount"]
        with pytest.raises(SchemaUnavailableError):
            provider.fetch_field_schema("u2")
        with pytest.raises(SchemaUnavailableError):
            provider.fetch_field_schema(None)

    def test_static_malformed(self):
        with pytest.raises(SchemaUnavailableError):
            StaticSchemaProvider("just a string").fetch_field_schema(None)
        with pytest.raises(SchemaUnavailableError):
            StaticSchemaProvider([{"fieldType": "text"}]).fetch_field_schema(None)
        assert StaticSchemaProvider(None).fetch_field_schema(None) == []

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "schema.yaml"
        path.write_text(yaml.safe_dump({"fields": HU_SCHEMA}, allow_unicode=True), encoding="utf-8")
        entries = YamlSchemaProvider(path).fetch_field_schema(None)
        assert entries[2].match_pattern == "due_date"

    def test_yaml_missing_file(self, tmp_path):
        with pytest.raises(SchemaUnavailableError) as excinfo:
            YamlSchemaProvider(tmp_path / "missing.yaml").fetch_field_schema("u1")
        assert excinfo.value.kind == ErrorKind.SCHEMA_UNAVAILABLE

    def test_yaml_malformed(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("fields: [unclosed", encoding="utf-8")
        with pytest.raises(SchemaUnavailableError):
            YamlSchemaProvider(path).fetch_field_schema(None)


# =============================================================================
# CACHE
# =============================================================================

class TestResultCache:

    def test_entries_are_copied(self):
        cache = ResultCache(maxsize=2)
        result = ExtractionResult(success=True, confidence=0.5)
        cache.put("k", result)
        result.warnings.append("changed after put")

        first = cache.get("k")
        assert first is not result
        assert first.warnings == []
        first.warnings.append("changed after get")
        assert cache.get("k").warnings == []
        assert cache.hits == 2

    def test_lru_eviction(self):
        cache = ResultCache(maxsize=2)
        cache.put("a", ExtractionResult())
        cache.put("b", ExtractionResult())
        cache.get("a")
        cache.put("c", ExtractionResult())
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_disabled_cache(self):
        cache = ResultCache(maxsize=0)
        cache.put("a", ExtractionResult())
        assert not cache.enabled
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_clear(self):
        cache = ResultCache()
        cache.put("a", ExtractionResult())
        cache.get("a")
        cache.get("missing")
        assert (cache.hits, cache.misses) == (1, 1)
        cache.clear()
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (0, 0)


# =============================================================================
# ORCHESTRATOR
# =============================================================================

def test_settings_from_config():
    settings = PipelineSettings.from_config()
    assert settings.timeout_seconds == 30
    assert settings.cache_size == 64
    assert settings.default_language == "auto"
    assert settings.required_stems == ("szamla", "fizet", "osszeg", "hatarido")


def test_english_email(orchestrator, en_bill_text):
    result = orchestrator.run(ExtractionContext(raw_text=en_bill_text, language="en", message_id="msg-1"))

    assert result.success
    assert result.error is None
    assert result.confidence == pytest.approx(0.9)
    assert len(result.bills) == 1
    bill = result.bill
    assert bill.fields.vendor == "Power Utilities Inc."
    assert bill.fields.amount == pytest.approx(124.56)
    assert bill.fields.due_date == date(2023, 6, 1)
    assert bill.fields.currency == "USD"
    assert bill.fields.account_number == "ACCT12345"
    assert bill.source.type == "email"
    assert bill.source.message_id == "msg-1"
    assert result.decode_tier is None
    assert result.debug_trace is None


def test_hungarian_email_with_auto_language(orchestrator, hu_bill_text):
    result = orchestrator.run(ExtractionContext(raw_text=hu_bill_text, language="auto"))

    assert result.success
    assert result.bill.language == "hu"
    assert result.bill.fields.amount == 45678.0
    assert result.bill.fields.currency == "HUF"
    assert result.confidence == pytest.approx(0.8)


def test_hungarian_space_grouped_amount_and_undotted_date(orchestrator, hu_bill_text):
    text = (hu_bill_text
            .replace("Fizetendő összeg: 45.678 Ft", "Fizetendő összeg: 45 678 Ft")
            .replace("Fizetési határidő: 2023.06.01.", "Fizetési határidő: 2023.06.01"))
    result = orchestrator.run(ExtractionContext(raw_text=text, language="hu"))

    assert result.success
    assert result.bill.fields.amount == 45678.0
    assert result.bill.fields.currency == "HUF"
    assert result.bill.fields.due_date == date(2023, 6, 1)


def test_stemming_can_be_disabled(orchestrator, hu_bill_text):
    result = orchestrator.run(ExtractionContext(raw_text=hu_bill_text, language="hu", apply_stemming=False))
    assert result.confidence == pytest.approx(1.0)


def test_partial_stem_coverage(orchestrator, hu_telecom_text):
    result = orchestrator.run(ExtractionContext(raw_text=hu_telecom_text, language="hu"))
    assert result.success
    assert result.confidence == pytest.approx(0.55)
    assert result.bill.fields.vendor == "Telekom"


def test_non_bill_is_low_confidence(orchestrator, non_bill_text):
    result = orchestrator.run(ExtractionContext(raw_text=non_bill_text, language="en"))

    assert not result.success
    assert result.bills == []
    assert result.error.kind == ErrorKind.LOW_CONFIDENCE
    assert result.error.message.startswith("no vendor or amount found")


def test_email_signature_company_is_not_a_bill(orchestrator):
    text = "Hi John,\nSee you at lunch tomorrow.\nBest,\nAcme Holdings Ltd"
    result = orchestrator.run(ExtractionContext(raw_text=text, language="en"))

    assert not result.success
    assert result.bills == []
    assert result.error.kind == ErrorKind.LOW_CONFIDENCE


def test_low_confidence_keeps_best_effort_bill(orchestrator):
    result = orchestrator.run(ExtractionContext(raw_text="Összesen: 1 500 Ft", language="hu"))

    assert not result.success
    assert result.error.kind == ErrorKind.LOW_CONFIDENCE
    assert "below threshold" in result.error.message
    assert result.bill.fields.amount == 1500.0


def test_mojibake_is_repaired(orchestrator, hu_bill_text):
    broken = hu_bill_text.encode("utf-8").decode("latin-1")
    result = orchestrator.run(ExtractionContext(raw_text=broken))

    assert result.success
    assert result.bill.language == "hu"
    assert result.bill.fields.vendor == "Áramszolgáltató Zrt."


@pytest.mark.parametrize("context", [
    ExtractionContext(),
    ExtractionContext(raw_text="x", language="fr"),
    ExtractionContext(raw_document=b""),
])
def test_invalid_input_raises(orchestrator, context):
    with pytest.raises(InvalidInputError):
        orchestrator.run(context)


def test_identical_input_gives_identical_result(en_bill_text):
    orchestrator = ExtractionOrchestrator(cache_size=0)
    context = ExtractionContext(raw_text=en_bill_text, language="en")
    assert orchestrator.run(context).to_dict() == orchestrator.run(context).to_dict()


def test_cache_returns_independent_copies(orchestrator, en_bill_text):
    context = ExtractionContext(raw_text=en_bill_text, language="en")
    first = orchestrator.run(context)
    first.bill.fields.vendor = "Mutated by caller"

    second = orchestrator.run(context)
    assert orchestrator.cache.hits == 1
    assert second is not first
    assert second.bill.fields.vendor == "Power Utilities Inc."


def test_cache_key_includes_source_ids(orchestrator, en_bill_text):
    first = orchestrator.run(ExtractionContext(raw_text=en_bill_text, language="en", message_id="m1"))
    second = orchestrator.run(ExtractionContext(raw_text=en_bill_text, language="en", message_id="m2"))
    assert orchestrator.cache.hits == 0
    assert (first.bill.source.message_id, second.bill.source.message_id) == ("m1", "m2")


def test_debug_trace(orchestrator, hu_bill_text):
    result = orchestrator.run(ExtractionContext(raw_text=hu_bill_text, language="hu", debug=True))
    trace = result.debug_trace

    assert trace["states"] == ["start", "normalizing", "extracting_fields", "reconciling", "done"]
    assert trace["language"] == "hu"
    assert trace["strategy"] == "pattern"
    assert trace["matches"]["amount"]["rule"] == "hu.amount.fizetendo_osszeg"
    assert trace["stem_analysis"]["coverage"] == 1.0
    assert set(trace["confidence_breakdown"]) == {"stem_keyword", "stem_coverage"}
    assert trace["text_excerpt"].startswith("Áramszolgáltató Zrt.")
    assert "debug_trace" in result.to_dict()


class TestSchemas:

    def test_provider_schema_is_mapped(self, hu_bill_text):
        orchestrator = ExtractionOrchestrator(schema_provider=StaticSchemaProvider(HU_SCHEMA))
        result = orchestrator.run(ExtractionContext(raw_text=hu_bill_text, language="hu", user_id="u1"))

        bill = result.bill
        assert bill.extraction_method == "schema"
        assert bill.dynamic_fields["total_amount"].value == 45678.0
        assert bill.dynamic_fields["hatarido"].value == date(2023, 6, 1)
        assert "notes" not in bill.dynamic_fields

    def test_context_schema_wins_over_provider(self, en_bill_text):
        provider = StaticSchemaProvider([{"name": "from_provider", "matchPattern": "vendor"}])
        orchestrator = ExtractionOrchestrator(schema_provider=provider)
        snapshot = SchemaSnapshot.from_entries([{"name": "payee", "matchPattern": "vendor"}])
        result = orchestrator.run(ExtractionContext(raw_text=en_bill_text, language="en", user_field_schema=snapshot))
        assert list(result.bill.dynamic_fields) == ["payee"]

    def test_unavailable_schema_becomes_warning(self, en_bill_text):
        provider = StaticSchemaProvider({"users": {"u1": HU_SCHEMA}})
        orchestrator = ExtractionOrchestrator(schema_provider=provider)
        result = orchestrator.run(ExtractionContext(raw_text=en_bill_text, language="en", user_id="u2"))

        assert result.success
        assert result.bill.extraction_method == "pattern"
        assert any(w.startswith("SchemaUnavailable: Field schema unavailable") for w in result.warnings)

    def test_provider_crash_becomes_warning(self, en_bill_text):
        class BrokenProvider:
            def fetch_field_schema(self, user_id):
                raise ConnectionError("schema store offline")

        orchestrator = ExtractionOrchestrator(schema_provider=BrokenProvider())
        result = orchestrator.run(ExtractionContext(raw_text=en_bill_text, language="en"))
        assert result.success
        assert any("schema store offline" in w for w in result.warnings)

    def test_malformed_context_schema_becomes_warning(self, en_bill_text):
        orchestrator = ExtractionOrchestrator()
        result = orchestrator.run(ExtractionContext(
            raw_text=en_bill_text, language="en", user_field_schema=[{"fieldType": "text"}]
        ))
        assert result.success
        assert result.warnings[0].startswith("SchemaUnavailable")


class TestDocuments:

    def test_pdf_end_to_end(self, orchestrator, make_pdf, en_bill_text):
        data = make_pdf(en_bill_text.split("\n"))
        result = orchestrator.run(ExtractionContext(
            raw_document=data, file_name="power.pdf", language="en", debug=True
        ))

        assert result.success
        assert result.decode_tier == "pymupdf"
        assert result.bill.fields.amount == pytest.approx(124.56)
        assert result.bill.source.type == "pdf"
        assert result.bill.source.file_name == "power.pdf"
        assert result.debug_trace["states"][:2] == ["start", "decoding_source"]

    def test_plain_text_document_bytes(self, orchestrator, hu_bill_text):
        data = hu_bill_text.encode("iso-8859-2")
        result = orchestrator.run(ExtractionContext(raw_document=data, language="hu"))
        assert result.success
        assert result.decode_tier is None
        assert result.bill.fields.vendor == "Áramszolgáltató Zrt."

    def test_page_errors_become_warnings(self, en_bill_text):
        outcome = DecodeOutcome(
            pages=[text_only_page(1, en_bill_text), failed_page(2, "ValueError: x")],
            tier="pymupdf",
            page_errors={2: "ValueError: x"},
        )
        decoder = StubDecoder(outcome)
        orchestrator = ExtractionOrchestrator(decoder=decoder)
        result = orchestrator.run(ExtractionContext(raw_document=PDF_STUB_BYTES, language="en"))

        assert result.success
        assert "Page 2 failed: ValueError: x" in result.warnings
        assert 0 < decoder.budgets[0] <= 30

    def test_decode_timeout_keeps_partial_bills(self, en_bill_text):
        outcome = DecodeOutcome(
            pages=[text_only_page(1, en_bill_text)],
            tier="pymupdf",
            timed_out=True,
            error="Decoding exceeded 30s; 1 of 2 page(s) completed",
        )
        decoder = StubDecoder(outcome)
        orchestrator = ExtractionOrchestrator(decoder=decoder)
        context = ExtractionContext(raw_document=PDF_STUB_BYTES, language="en")
        result = orchestrator.run(context)

        assert not result.success
        assert result.error.kind == ErrorKind.DECODE_ERROR
        assert result.bill.fields.amount == pytest.approx(124.56)

        orchestrator.run(context)
        assert len(decoder.budgets) == 2

    def test_decode_error(self):
        decoder = StubDecoder(error=DecodeError("No decoder tier could interpret the document"))
        orchestrator = ExtractionOrchestrator(decoder=decoder)
        result = orchestrator.run(ExtractionContext(raw_document=PDF_STUB_BYTES, debug=True))

        assert not result.success
        assert result.bills == []
        assert result.error.kind == ErrorKind.DECODE_ERROR
        assert result.debug_trace["states"] == ["start", "decoding_source", "done"]

    def test_declared_pdf_with_bad_signature(self, orchestrator):
        document = RawDocument(b"definitely not a pdf", SourceKind.PDF)
        result = orchestrator.run(ExtractionContext(raw_document=document))
        assert result.error.kind == ErrorKind.DECODE_ERROR

    def test_pdf_without_text_is_low_confidence(self):
        decoder = StubDecoder(DecodeOutcome(pages=[text_only_page(1, "")], tier="pymupdf"))
        orchestrator = ExtractionOrchestrator(decoder=decoder)
        result = orchestrator.run(ExtractionContext(raw_document=PDF_STUB_BYTES))
        assert result.error.kind == ErrorKind.LOW_CONFIDENCE


def test_unexpected_failure_is_internal_error(hu_bill_text):
    orchestrator = ExtractionOrchestrator(stem_dictionary=ExplodingDictionary())
    context = ExtractionContext(raw_text=hu_bill_text, language="hu")
    result = orchestrator.run(context)

    assert not result.success
    assert result.error.kind == ErrorKind.INTERNAL_ERROR
    assert "normalizing" in result.error.message
    assert "stem index corrupted" in result.error.message
    assert len(orchestrator.cache) == 0


def test_pipeline_states_enum():
    assert [state.value for state in PipelineState] == [
        "start", "decoding_source", "normalizing", "extracting_fields", "reconciling", "done",
    ]


def test_result_survives_json_round_trip(orchestrator, hu_bill_text):
    result = orchestrator.run(ExtractionContext(raw_text=hu_bill_text, language="hu"))
    restored = ExtractionResult.from_dict(json.loads(result.to_json()))
    assert restored.to_dict() == result.to_dict()
