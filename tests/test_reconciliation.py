from datetime import date

import pytest

from bill_extraction.extraction import Bill, BillSource, CanonicalFields, DynamicValue, ValueKind
from bill_extraction.language import StemAnalysis, StemDictionary, analyze_stems
from bill_extraction.reconciliation import (
    EMPTY_SCHEMA,
    FieldSchemaEntry,
    FieldType,
    PatternBasedStrategy,
    SchemaAwareStrategy,
    SchemaSnapshot,
    apply_dynamic_fields,
    bills_match,
    canonical_slot_for,
    choose_value,
    coerce_value,
    confidence_breakdown,
    deduplicate_bills,
    is_placeholder,
    map_to_schema,
    merge_bills,
    merge_fields,
    select_strategy,
    stem_confidence,
    weighted_confidence,
)
from bill_extraction.reconciliation.merge import vendors_match


HU_SCHEMA = [
    {"name": "total_amount", "fieldType": "currency"},
    {"name": "szolgaltato", "matchPattern": "vendor"},
    {"name": "hatarido", "fieldType": "date", "matchPattern": "due_date"},
    {"name": "notes", "isEnabled": False},
]


def make_bill(vendor=None, amount=None, invoice_number=None, **extra):
    fields = CanonicalFields(vendor=vendor, amount=amount, invoice_number=invoice_number, **extra)
    return Bill(fields=fields, source=BillSource(message_id="m1"))


# =============================================================================
# SCHEMA
# =============================================================================

class TestSchema:

    def test_entry_from_camel_case(self):
        entry = FieldSchemaEntry.from_dict({
            "name": "total_amount", "displayName": "Total", "fieldType": "currency",
            "isEnabled": True, "displayOrder": 2, "matchPattern": "amount",
        })
        assert entry.display_name == "Total"
        assert entry.field_type == FieldType.CURRENCY
        assert entry.display_order == 2
        assert entry.match_pattern == "amount"

    def test_entry_from_snake_case_and_string_flags(self):
        entry = FieldSchemaEntry.from_dict({"name": " memo ", "field_type": "TEXT", "is_enabled": "false"})
        assert entry.name == "memo"
        assert entry.field_type == FieldType.TEXT
        assert not entry.is_enabled

    def test_unknown_type_defaults_to_text(self):
        assert FieldSchemaEntry.from_dict({"name": "x", "fieldType": "money"}).field_type == FieldType.TEXT

    def test_entry_requires_name(self):
        with pytest.raises(ValueError):
            FieldSchemaEntry.from_dict({"fieldType": "text"})

    def test_enabled_entries_follow_display_order(self):
        snapshot = SchemaSnapshot.from_entries([
            {"name": "c", "displayOrder": 2},
            {"name": "a", "displayOrder": 1},
            {"name": "off", "displayOrder": 0, "isEnabled": False},
            {"name": "b", "displayOrder": 1},
        ])
        assert [e.name for e in snapshot.enabled_entries()] == ["a", "b", "c"]
        assert len(snapshot) == 4

    def test_snapshot_is_immutable(self):
        snapshot = SchemaSnapshot.from_entries(HU_SCHEMA)
        with pytest.raises(AttributeError):
            snapshot.entries = ()
        with pytest.raises(AttributeError):
            snapshot.entries[0].name = "other"

    def test_fingerprint(self):
        first = SchemaSnapshot.from_entries(HU_SCHEMA)
        second = SchemaSnapshot.from_entries(HU_SCHEMA)
        assert first.fingerprint == second.fingerprint
        assert first.fingerprint != EMPTY_SCHEMA.fingerprint
        assert not EMPTY_SCHEMA


# =============================================================================
# MAPPING
# =============================================================================

@pytest.mark.parametrize("entry,slot", [
    (FieldSchemaEntry(name="total_amount"), "amount"),
    (FieldSchemaEntry(name="szolgaltato", match_pattern="vendor"), "vendor"),
    (FieldSchemaEntry(name="x", match_pattern="^inv"), "invoice_number"),
    (FieldSchemaEntry(name="x", match_pattern="date"), "issue_date"),
    (FieldSchemaEntry(name="invoice_date", match_pattern="["), "issue_date"),
    (FieldSchemaEntry(name="company_name"), "vendor"),
    (FieldSchemaEntry(name="Account_Holder"), "account_number"),
    (FieldSchemaEntry(name="invoice_no"), "invoice_number"),
    (FieldSchemaEntry(name="notes"), None),
])
def test_canonical_slot_for(entry, slot):
    assert canonical_slot_for(entry) == slot


@pytest.mark.parametrize("value,field_type,expected", [
    (124.56, FieldType.NUMBER, DynamicValue(ValueKind.NUMBER, 124.56)),
    ("45.678 Ft", FieldType.CURRENCY, DynamicValue(ValueKind.NUMBER, 45678.0)),
    ("n/a", FieldType.NUMBER, DynamicValue(ValueKind.TEXT, "n/a")),
    (date(2023, 6, 1), FieldType.DATE, DynamicValue(ValueKind.DATE, date(2023, 6, 1))),
    ("2023-06-01", FieldType.DATE, DynamicValue(ValueKind.DATE, date(2023, 6, 1))),
    ("igen", FieldType.BOOLEAN, DynamicValue(ValueKind.BOOLEAN, True)),
    ("nem", FieldType.BOOLEAN, DynamicValue(ValueKind.BOOLEAN, False)),
    ("Acme", FieldType.BOOLEAN, DynamicValue(ValueKind.BOOLEAN, True)),
    ("unknown", FieldType.BOOLEAN, DynamicValue(ValueKind.BOOLEAN, False)),
    (date(2023, 6, 1), FieldType.TEXT, DynamicValue(ValueKind.TEXT, "2023-06-01")),
    (8990.0, FieldType.TEXT, DynamicValue(ValueKind.TEXT, "8990")),
    (12.5, FieldType.TEXT, DynamicValue(ValueKind.TEXT, "12.5")),
])
def test_coerce_value(value, field_type, expected):
    assert coerce_value(value, field_type) == expected


def test_coerce_value_unrepresentable():
    assert coerce_value(None, FieldType.TEXT) is None
    assert coerce_value("not a date", FieldType.DATE) is None


def test_map_to_schema():
    fields = CanonicalFields(vendor="Áramszolgáltató Zrt.", amount=45678.0, due_date=date(2023, 6, 1))
    mapped = map_to_schema(fields, SchemaSnapshot.from_entries(HU_SCHEMA))

    assert mapped == {
        "total_amount": DynamicValue(ValueKind.NUMBER, 45678.0),
        "szolgaltato": DynamicValue(ValueKind.TEXT, "Áramszolgáltató Zrt."),
        "hatarido": DynamicValue(ValueKind.DATE, date(2023, 6, 1)),
    }
    assert map_to_schema(fields, EMPTY_SCHEMA) == {}


def test_unpopulated_slots_are_not_mapped():
    mapped = map_to_schema(CanonicalFields(amount=10.0), SchemaSnapshot.from_entries(HU_SCHEMA))
    assert list(mapped) == ["total_amount"]


def test_apply_dynamic_fields_never_overwrites_real_values():
    existing = {
        "a": DynamicValue(ValueKind.TEXT, "Acme"),
        "b": DynamicValue(ValueKind.TEXT, "Unknown"),
    }
    candidates = {
        "a": DynamicValue(ValueKind.TEXT, "Other"),
        "b": DynamicValue(ValueKind.TEXT, "Real Vendor"),
        "c": DynamicValue(ValueKind.TEXT, "n/a"),
        "d": DynamicValue(ValueKind.NUMBER, 5.0),
    }
    merged = apply_dynamic_fields(existing, candidates)

    assert merged["a"].value == "Acme"
    assert merged["b"].value == "Real Vendor"
    assert "c" not in merged
    assert merged["d"].value == 5.0
    assert existing["b"].value == "Unknown"


@pytest.mark.parametrize("value,expected", [
    (None, True),
    ("", True),
    ("  Unknown ", True),
    ("N/A", True),
    (DynamicValue(ValueKind.TEXT, "n/a"), True),
    ("Acme", False),
    (0, False),
])
def test_is_placeholder(value, expected):
    assert is_placeholder(value) is expected


# =============================================================================
# MERGE
# =============================================================================

@pytest.mark.parametrize("a,b,winner", [
    (0, 50, 50),
    (None, 50, 50),
    ("Unknown", "Acme Power", "Acme Power"),
    ("Acme", "Acme Power", "Acme Power"),
    ("abc", "abd", "abc"),
    (-100.0, 50.0, -100.0),
    (50.0, -50.0, 50.0),
    (date(2023, 1, 1), date(2023, 6, 1), date(2023, 6, 1)),
    (False, True, True),
])
def test_choose_value_is_symmetric(a, b, winner):
    assert choose_value(a, b) == winner
    assert choose_value(b, a) == winner


def test_choose_value_mismatched_types_keeps_first():
    assert choose_value("x", 5) == "x"
    assert choose_value(5, "x") == 5
    assert choose_value(None, None) is None


def test_choose_value_on_dynamic_values():
    zero = DynamicValue(ValueKind.NUMBER, 0.0)
    fifty = DynamicValue(ValueKind.NUMBER, 50.0)
    assert choose_value(zero, fifty) is fifty
    assert choose_value(fifty, zero) is fifty
    assert choose_value(None, zero) is zero


def test_merge_fields_keeps_winner_provenance():
    primary = CanonicalFields()
    primary.set_field("vendor", "Unknown", "p.vendor")
    primary.set_field("amount", 100.0, "p.amount")
    secondary = CanonicalFields()
    secondary.set_field("vendor", "Acme Power Kft.", "s.vendor")
    secondary.set_field("due_date", date(2023, 6, 1), "s.due")

    merged = merge_fields(primary, secondary)
    assert merged.vendor == "Acme Power Kft."
    assert merged.amount == 100.0
    assert merged.due_date == date(2023, 6, 1)
    assert merged.provenance == {"vendor": "s.vendor", "amount": "p.amount", "due_date": "s.due"}


def test_merge_bills_keeps_primary_source():
    primary = make_bill(vendor="Acme Power Kft.", amount=0.0)
    primary.dynamic_fields["total"] = DynamicValue(ValueKind.TEXT, "N/A")
    secondary = Bill(
        fields=CanonicalFields(amount=100.0),
        dynamic_fields={"total": DynamicValue(ValueKind.NUMBER, 100.0)},
        source=BillSource(message_id="m2"),
    )
    merged = merge_bills(primary, secondary)

    assert merged.fields.amount == 100.0
    assert merged.fields.vendor == "Acme Power Kft."
    assert merged.dynamic_fields["total"].value == 100.0
    assert merged.source.message_id == "m1"


def test_merge_bills_never_overwrites_mapped_dynamic_value():
    primary = make_bill(vendor="Acme")
    primary.dynamic_fields["payee"] = DynamicValue(ValueKind.TEXT, "Acme")
    secondary = make_bill(vendor="Acme Power Kft.")
    secondary.dynamic_fields["payee"] = DynamicValue(ValueKind.TEXT, "Acme Power Kft.")
    secondary.dynamic_fields["due"] = DynamicValue(ValueKind.DATE, date(2023, 6, 1))

    merged = merge_bills(primary, secondary)

    assert merged.fields.vendor == "Acme Power Kft."
    assert merged.dynamic_fields["payee"].value == "Acme"
    assert merged.dynamic_fields["due"].value == date(2023, 6, 1)
    assert primary.dynamic_fields == {"payee": DynamicValue(ValueKind.TEXT, "Acme")}


class TestMatching:

    def test_equal_invoice_numbers(self):
        assert bills_match(make_bill(invoice_number="SZ-1"), make_bill(invoice_number="sz-1"))

    def test_fuzzy_vendor_and_close_amount(self):
        assert bills_match(make_bill("Acme Power Kft.", 100.0), make_bill("ACME POWER", 100.5))

    def test_amounts_outside_tolerance(self):
        assert not bills_match(make_bill("Acme Power Kft.", 100.0), make_bill("Acme Power Kft.", 110.0))

    def test_different_vendors(self):
        assert not bills_match(make_bill("Acme Power Kft.", 100.0), make_bill("Budapest Water", 100.0))

    def test_placeholder_vendors_never_match(self):
        assert not vendors_match("Unknown", "Unknown")
        assert vendors_match("Power Utilities Inc.", "Power Utilities")
        assert vendors_match("Magyar Telekom Nyrt.", "Magyar Telekom Nyrt")


def test_deduplicate_bills_merges_into_first_occurrence():
    first = make_bill("Acme Power Kft.", 100.0)
    duplicate = make_bill("Acme Power", 100.0, due_date=date(2023, 6, 1))
    other = make_bill("Budapest Water", 20.0)

    unique = deduplicate_bills([first, duplicate, other])
    assert len(unique) == 2
    assert unique[0].fields.vendor == "Acme Power Kft."
    assert unique[0].fields.due_date == date(2023, 6, 1)
    assert unique[1].fields.vendor == "Budapest Water"


# =============================================================================
# CONFIDENCE AND STRATEGIES
# =============================================================================

def test_weighted_confidence():
    assert weighted_confidence(CanonicalFields(vendor="Power Utilities Inc.", amount=124.56)) == pytest.approx(0.4)
    assert weighted_confidence(CanonicalFields(category="other")) == 0.0
    assert confidence_breakdown(CanonicalFields(category="utility"))["category"] == pytest.approx(0.1)
    assert weighted_confidence(CanonicalFields(amount=1.0), {"amount": 2.0}) == 1.0


def test_stem_confidence():
    assert stem_confidence(StemAnalysis(coverage=0.5, keyword_present=True)) == pytest.approx(0.55)
    assert stem_confidence(StemAnalysis(coverage=1.0, keyword_present=False)) == pytest.approx(0.5)
    assert stem_confidence(StemAnalysis()) == 0.0


def test_select_strategy():
    assert isinstance(select_strategy(None), PatternBasedStrategy)
    assert isinstance(select_strategy(EMPTY_SCHEMA), PatternBasedStrategy)
    disabled = SchemaSnapshot.from_entries([{"name": "x", "isEnabled": False}])
    assert isinstance(select_strategy(disabled), PatternBasedStrategy)
    assert isinstance(select_strategy(SchemaSnapshot.from_entries(HU_SCHEMA)), SchemaAwareStrategy)


def test_pattern_strategy_on_english_bill(en_bill_text):
    outcome = PatternBasedStrategy().extract(en_bill_text, "en")
    assert outcome.success
    assert outcome.confidence == pytest.approx(0.9)
    assert outcome.threshold == pytest.approx(0.2)
    assert outcome.bill.extraction_method == "pattern"
    assert outcome.bill.language == "en"
    assert outcome.bill.dynamic_fields == {}


def test_schema_strategy_maps_fields(hu_bill_text):
    outcome = SchemaAwareStrategy().extract(hu_bill_text, "hu", SchemaSnapshot.from_entries(HU_SCHEMA))
    dynamic = outcome.bill.dynamic_fields
    assert outcome.bill.extraction_method == "schema"
    assert dynamic["total_amount"] == DynamicValue(ValueKind.NUMBER, 45678.0)
    assert dynamic["szolgaltato"].value == "Áramszolgáltató Zrt."
    assert dynamic["hatarido"] == DynamicValue(ValueKind.DATE, date(2023, 6, 1))
    assert "notes" not in dynamic


def test_stem_path_uses_stem_confidence(hu_bill_text):
    analysis = analyze_stems(
        hu_bill_text, StemDictionary(),
        ["szamla", "fizet", "osszeg", "hatarido"], ["szamla", "fizet", "dij", "befizet"],
    )
    outcome = PatternBasedStrategy().extract(hu_bill_text, "hu", analysis=analysis)
    assert outcome.confidence == pytest.approx(0.8)
    assert outcome.threshold == pytest.approx(0.3)
    assert set(outcome.breakdown) == {"stem_keyword", "stem_coverage"}
    assert outcome.success


def test_nothing_found_gives_no_bill(non_bill_text):
    outcome = PatternBasedStrategy().extract(non_bill_text, "en")
    assert outcome.bill is None
    assert outcome.confidence == 0.0
    assert not outcome.success


def test_below_threshold_keeps_best_effort_bill(en_bill_text):
    outcome = PatternBasedStrategy(threshold=0.95).extract(en_bill_text, "en")
    assert not outcome.success
    assert outcome.bill is not None
    assert outcome.to_dict()["success"] is False
