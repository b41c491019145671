"""
Service Category Classification.

Documents are classified into a small fixed taxonomy by keyword-set
membership. The category with the most distinct keyword hits wins, ties
go to the category listed first, and a document without hits is "other".
The category also selects category-specific vendor rules (known
providers).
"""

import re
from types import MappingProxyType
from typing import Dict, Mapping, Pattern, Tuple

from .patterns import FieldRule

CATEGORY_OTHER = "other"

CATEGORY_TAXONOMY = (
    "utility",
    "telecom",
    "subscription",
    "building-service",
    "shopping",
    "travel",
    "insurance",
    CATEGORY_OTHER,
)

CATEGORY_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "utility": (
        "electric", "gas", "water", "sewage", "utilit", "power", "energy",
        "áram", "gáz", "földgáz", "víz", "közüzem", "villamos", "energia",
        "mvm", "e.on", "elmű", "émász", "főgáz", "tigáz", "nkm",
    ),
    "telecom": (
        "phone", "mobile", "wireless", "telecom", "internet", "broadband", "tv",
        "telefon", "mobil", "telekom", "telenor", "vodafone", "yettel", "digi", "upc",
    ),
    "subscription": (
        "subscription", "membership", "netflix", "spotify", "hulu", "disney",
        "youtube", "előfizetés", "havi díj",
    ),
    "building-service": (
        "közös költség", "társasház", "lakásszövetkezet", "albetét", "hulladék",
        "szemétszállítás", "takarítás", "hoa", "property management", "waste",
    ),
    "shopping": (
        "order", "purchase", "store", "shop", "amazon", "ebay",
        "vásárlás", "rendelés", "webáruház",
    ),
    "travel": (
        "airline", "flight", "hotel", "booking", "reservation", "travel",
        "repülő", "szállás", "foglalás", "utazás",
    ),
    "insurance": (
        "insurance", "policy", "coverage", "premium", "claim",
        "biztosítás", "biztosító", "casco",
    ),
})


def _keyword_regex(keyword: str) -> Pattern:
    # Short keywords must be whole words; longer ones may be word prefixes
    suffix = r'\b' if len(keyword) <= 3 else ''
    return re.compile(r'(?<!\w)' + re.escape(keyword) + suffix, re.IGNORECASE)


_KEYWORD_PATTERNS: Mapping[str, Tuple[Pattern, ...]] = MappingProxyType({
    category: tuple(_keyword_regex(keyword) for keyword in keywords)
    for category, keywords in CATEGORY_KEYWORDS.items()
})


# Known providers per category, tried after label and company-line rules
CATEGORY_VENDOR_RULES: Mapping[str, Tuple[FieldRule, ...]] = MappingProxyType({
    "utility": (
        FieldRule.compile(
            'category.vendor.utility_label',
            r'\b(?:energia|gáz|áram|víz)szolgáltató\s*:[ \t]*([^\n]{3,80})'
        ),
        FieldRule.compile(
            'category.vendor.electricity_provider',
            r'\b(MVM(?:\s+Next)?(?:\s+Energiakereskedelmi)?|E\.ON(?:\s+Energiakereskedelmi)?|ELMŰ(?:-ÉMÁSZ)?|ÉMÁSZ)(?!\w)'
        ),
        FieldRule.compile(
            'category.vendor.gas_provider',
            r'\b(Főgáz|FŐGÁZ|Tigáz|TIGÁZ|NKM(?:\s+Energia)?)(?!\w)'
        ),
    ),
    "telecom": (
        FieldRule.compile(
            'category.vendor.telecom_provider',
            r'\b(Magyar\s+Telekom|Telekom|Telenor|Vodafone|Yettel|Digi|UPC)\b'
        ),
    ),
    "building-service": (
        FieldRule.compile(
            'category.vendor.building_manager',
            r'\b(?:közös\s*képvisel(?:ő|et)|társasház|lakásszövetkezet|kezelő|üzemeltető)\s*:[ \t]*([^\n]{3,80})'
        ),
    ),
})


def category_scores(text: str) -> Dict[str, int]:
    """Distinct keyword hits per category."""
    if not text:
        return {category: 0 for category in _KEYWORD_PATTERNS}
    return {
        category: sum(1 for pattern in patterns if pattern.search(text))
        for category, patterns in _KEYWORD_PATTERNS.items()
    }


def classify_category(text: str) -> str:
    """
    Classify a document into the service taxonomy.

    Example:
        >>> classify_category("Áramszolgáltató Zrt. villamos energia")
        'utility'
        >>> classify_category("Let's meet tomorrow")
        'other'
    """
    scores = category_scores(text)
    best = CATEGORY_OTHER
    best_score = 0
    for category in CATEGORY_TAXONOMY:
        score = scores.get(category, 0)
        if score > best_score:
            best, best_score = category, score
    return best


def vendor_rules_for(category: str) -> Tuple[FieldRule, ...]:
    return CATEGORY_VENDOR_RULES.get(category, ())
