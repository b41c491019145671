import pytest

from bill_extraction.postprocessor import AmountNormalizer, detect_currency, parse_amount
from bill_extraction.postprocessor.normalizers import (
    AmountSignals,
    amount_signals,
    clean_amount_text,
    correct_thousands_misread,
)


@pytest.mark.parametrize("text,expected", [
    ("45.678", 45678.0),
    ("1.234.567", 1234567.0),
    ("12 345,67 Ft", 12345.67),
    ("1.234,56", 1234.56),
    ("123,45", 123.45),
    ("1,5", 1.5),
    ("$1,234.56", 1234.56),
    ("124.56", 124.56),
    ("1 234 567 Ft", 1234567.0),
    ("8 990", 8990.0),
    ("HUF 45 678", 45678.0),
])
def test_parse_amount_handles_locale_formats(text, expected):
    assert parse_amount(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["", "abc", "Ft", "., "])
def test_parse_amount_returns_zero_when_nothing_parses(text):
    assert parse_amount(text) == 0.0


def test_dot_thousands_is_removed_before_parsing():
    # "123.456" is read as a grouped integer, never as 123.456
    assert parse_amount("123.456") == 123456.0


def test_clean_amount_text_strips_currency_and_stray_separators():
    assert clean_amount_text("Ft 12 345,-") == "12 345"
    assert clean_amount_text("$99.") == "99"


def test_amount_signals():
    signals = amount_signals("12 345,67")
    assert signals.space_thousands
    assert not signals.dot_thousands
    assert signals.comma_decimal
    assert signals.digit_count == 7
    assert signals.has_thousands


class TestThousandsMisread:

    def test_small_value_with_long_digit_run_is_multiplied(self):
        signals = AmountSignals(dot_thousands=True, space_thousands=False, comma_decimal=False, digit_count=5)
        assert correct_thousands_misread(12.345, signals) == pytest.approx(12345.0)

    def test_decimal_signal_disables_correction(self):
        signals = AmountSignals(dot_thousands=True, space_thousands=False, comma_decimal=True, digit_count=5)
        assert correct_thousands_misread(12.34, signals) == 12.34

    def test_short_digit_run_disables_correction(self):
        signals = AmountSignals(dot_thousands=True, space_thousands=False, comma_decimal=False, digit_count=4)
        assert correct_thousands_misread(12.34, signals) == 12.34

    def test_value_at_ceiling_is_kept(self):
        signals = AmountSignals(dot_thousands=True, space_thousands=False, comma_decimal=False, digit_count=6)
        assert correct_thousands_misread(100.0, signals) == 100.0

    def test_without_thousands_signal_value_is_kept(self):
        signals = AmountSignals(dot_thousands=False, space_thousands=False, comma_decimal=False, digit_count=6)
        assert correct_thousands_misread(12.5, signals) == 12.5

    def test_small_genuine_amount_is_not_inflated_by_parse(self):
        assert parse_amount("99,90 Ft") == pytest.approx(99.9)
        assert parse_amount("1.500") == 1500.0

    @pytest.mark.parametrize("text,expected", [
        ("9", 9.0),
        ("7", 7.0),
        ("3.45", 3.45),
        ("99", 99.0),
        ("12.34", 12.34),
    ])
    def test_small_amounts_are_not_multiplied(self, text, expected):
        assert parse_amount(text) == pytest.approx(expected)

    def test_grouped_amount_parses_to_the_corrected_value(self):
        # same value the x1000 correction would give for a misread "123.456"
        assert parse_amount("123.456") == 123456.0
        assert parse_amount("12.345") == 12345.0

    def test_parse_amount_applies_correction_below_ceiling(self):
        # raising the ceiling exposes the guard on an already grouped value
        assert parse_amount("12.345", ceiling=100000) == 12345000.0
        assert parse_amount("12 345", ceiling=100000) == 12345000.0

    @pytest.mark.parametrize("text,kwargs,expected", [
        ("12.345,6", {"ceiling": 100000}, 12345.6),
        ("12.345", {"ceiling": 100000, "min_digits": 6}, 12345.0),
        ("12345", {"ceiling": 100000}, 12345.0),
        ("12,345", {"ceiling": 100000}, 12345.0),
    ])
    def test_parse_amount_correction_needs_every_signal(self, text, kwargs, expected):
        assert parse_amount(text, **kwargs) == pytest.approx(expected)


@pytest.mark.parametrize("text,language,expected", [
    ("Fizetendő: 100 Ft", None, "HUF"),
    ("Total 100", "hu", "HUF"),
    ("Total: €50.00", "en", "EUR"),
    ("Amount EUR 50", "en", "EUR"),
    ("Total: £5", "en", "GBP"),
    ("Total: $5", "en", "USD"),
    ("Total 5", "en", "USD"),
])
def test_detect_currency(text, language, expected):
    assert detect_currency(text, language) == expected


def test_amount_normalizer_reads_config():
    normalizer = AmountNormalizer()
    assert normalizer.ceiling == 100
    assert normalizer.min_digits == 5
    assert normalizer.normalize("45 678 Ft") == 45678.0
    assert normalizer.normalize("n/a") == 0.0
