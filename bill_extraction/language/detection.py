"""
Keyword-based language detection for bill texts.
"""

import re
from typing import Tuple

from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)

LANGUAGE_HU = "hu"
LANGUAGE_EN = "en"
LANGUAGE_AUTO = "auto"
SUPPORTED_LANGUAGES = (LANGUAGE_EN, LANGUAGE_HU)

HUNGARIAN_KEYWORDS = (
    "számla", "fizetendő", "összeg", "forint", "végösszeg", "áfa",
    "határidő", "teljesítés", "kelte", "dátum", "fizetési", "szolgáltató",
    "vevő", "eladó", "megrendelő", "köszönjük", "bankszámla", "adószám",
)

ENGLISH_KEYWORDS = (
    "invoice", "bill", "amount", "total", "due", "payment", "date",
    "account", "subtotal", "tax", "customer", "thank you", "balance",
    "statement", "receipt",
)

_HUNGARIAN_CHARS_RE = re.compile(r'[áéíóöőúüűÁÉÍÓÖŐÚÜŰ]')


def _keyword_hits(text: str, keywords: Tuple[str, ...]) -> int:
    return sum(1 for keyword in keywords if keyword in text)


def detect_language(text: str, threshold: float = 0.15) -> str:
    """
    Guess whether a text is Hungarian or English.

    Each keyword list is scanned and its hit ratio computed. Hungarian wins
    when its ratio reaches ``threshold`` and beats the English ratio.

    Args:
        text: Document text.
        threshold: Minimum Hungarian keyword ratio.

    Returns:
        "hu" or "en".
    """
    if not text:
        return LANGUAGE_EN

    lowered = text.lower()
    hu_ratio = _keyword_hits(lowered, HUNGARIAN_KEYWORDS) / len(HUNGARIAN_KEYWORDS)
    en_ratio = _keyword_hits(lowered, ENGLISH_KEYWORDS) / len(ENGLISH_KEYWORDS)

    language = LANGUAGE_HU if hu_ratio >= threshold and hu_ratio > en_ratio else LANGUAGE_EN
    logger.debug(f"Language scores: hu={hu_ratio:.2f}, en={en_ratio:.2f} -> {language}")
    return language


def looks_hungarian_bill(text: str) -> bool:
    """More than 5 Hungarian accented characters and at least 2 bill keywords."""
    if not text:
        return False
    accents = len(_HUNGARIAN_CHARS_RE.findall(text))
    hits = _keyword_hits(text.lower(), HUNGARIAN_KEYWORDS)
    return accents > 5 and hits >= 2
