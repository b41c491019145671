import pytest

from bill_extraction.language import (
    HUNGARIAN_STEMS,
    LANGUAGE_EN,
    LANGUAGE_HU,
    StemDictionary,
    analyze_stems,
    detect_language,
    has_mojibake,
    looks_hungarian_bill,
    normalize_hungarian,
    repair_mojibake,
    tokenize,
)

REQUIRED = ["szamla", "fizet", "osszeg", "hatarido"]
KEYWORDS = ["szamla", "fizet", "dij", "befizet"]


@pytest.fixture(scope="module")
def dictionary():
    return StemDictionary()


def test_normalize_hungarian():
    assert normalize_hungarian("Fizetési Határidő") == "fizetesi hatarido"
    assert normalize_hungarian("ÁRVÍZTŰRŐ TÜKÖRFÚRÓGÉP") == "arvizturo tukorfurogep"
    assert normalize_hungarian("") == ""


def test_tokenize_blanks_punctuation():
    assert tokenize("Összeg: 1 200 Ft.") == ["Összeg", "1", "200", "Ft"]
    assert tokenize("„Díj” (havi)") == ["Díj", "havi"]
    assert tokenize("") == []


@pytest.mark.parametrize("token,stem", [
    ("számla", "szamla"),
    ("SZÁMLÁT", "szamla"),
    ("számlázási", "szamla"),
    ("befizetésének", "befizet"),
    ("fizetendő", "fizet"),
    ("határidőig", "hatarido"),
    ("díjat", "dij"),
])
def test_find_stem(dictionary, token, stem):
    assert dictionary.find_stem(token) == stem


@pytest.mark.parametrize("token", ["xyz", "", "   "])
def test_find_stem_without_match(dictionary, token):
    assert dictionary.find_stem(token) is None


def test_ambiguous_reverse_prefix_returns_none():
    dictionary = StemDictionary({"abcd1": ["abcdef"], "abcd2": ["abcdgh"]})
    assert dictionary.find_stem("abcd") is None
    assert dictionary.find_stem("abcdefg") == "abcd1"


def test_reverse_prefix_needs_four_characters():
    dictionary = StemDictionary({"kelte": ["keltezes"]})
    assert dictionary.find_stem("kelt") == "kelte"
    assert dictionary.find_stem("kel") is None


def test_dictionary_is_read_only(dictionary):
    with pytest.raises(TypeError):
        dictionary.stems["new"] = ("new",)
    assert "szamla" in dictionary
    assert len(dictionary) == len(HUNGARIAN_STEMS)


def test_stem_coverage(dictionary):
    assert dictionary.stem_coverage("Számla fizetési határidő", REQUIRED) == pytest.approx(0.75)
    assert dictionary.stem_coverage("anything", []) == 0.0


def test_contains_stems(dictionary):
    assert dictionary.contains_stems("Díjbekérő a havi díjról", ["dij"])
    assert not dictionary.contains_stems("Hello world", ["dij"])


def test_analyze_stems_on_hungarian_bill(dictionary, hu_bill_text):
    analysis = analyze_stems(hu_bill_text, dictionary, REQUIRED, KEYWORDS)
    assert analysis.coverage == 1.0
    assert analysis.keyword_present
    assert {"szamla", "fizet", "osszeg", "hatarido"} <= analysis.found_stems

    data = analysis.to_dict()
    assert data["required_stems"] == REQUIRED
    assert data["token_count"] == len(analysis.tokens)


def test_analyze_stems_on_non_bill(dictionary, non_bill_text):
    analysis = analyze_stems(non_bill_text, dictionary, REQUIRED, KEYWORDS)
    assert analysis.coverage == 0.0
    assert not analysis.keyword_present


class TestMojibake:

    def test_latin1_misdecode_is_repaired(self):
        broken = "Fizetési határidő".encode("utf-8").decode("latin-1")
        assert has_mojibake(broken)
        assert repair_mojibake(broken) == "Fizetési határidő"

    def test_cp1252_misdecode_is_repaired(self):
        broken = "határidő".encode("utf-8").decode("cp1252")
        assert broken == "hatÃ¡ridÅ‘"
        assert repair_mojibake(broken) == "határidő"

    def test_mixed_text_uses_sequence_table(self):
        assert repair_mojibake("SzÃ¡mla õ") == "Számla ő"

    def test_clean_text_is_untouched(self):
        assert not has_mojibake("Számla összeg")
        assert repair_mojibake("Számla összeg") == "Számla összeg"
        assert repair_mojibake("") == ""


class TestDetection:

    def test_hungarian(self, hu_bill_text):
        assert detect_language(hu_bill_text) == LANGUAGE_HU
        assert looks_hungarian_bill(hu_bill_text)

    def test_english(self, en_bill_text):
        assert detect_language(en_bill_text) == LANGUAGE_EN
        assert not looks_hungarian_bill(en_bill_text)

    def test_empty_text_defaults_to_english(self):
        assert detect_language("") == LANGUAGE_EN

    def test_threshold(self):
        text = "számla"
        assert detect_language(text, threshold=0.01) == LANGUAGE_HU
        assert detect_language(text, threshold=0.5) == LANGUAGE_EN
