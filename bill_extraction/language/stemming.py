"""
Hungarian Text Normalization and Stemming Module.

This module provides:
    - Accent stripping and lowercasing of Hungarian text
    - Punctuation-aware whitespace tokenization
    - Dictionary-based stem resolution (exact, then prefix matching)
    - Stem coverage scoring over a required stem set

The StemDictionary is an immutable value built once by the caller and
passed down the pipeline; no module-level index is kept.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from bill_extraction.utils.logger import get_logger
from .stems import HUNGARIAN_STEMS

logger = get_logger(__name__)

_ACCENT_TABLE = str.maketrans({
    'á': 'a', 'é': 'e', 'í': 'i',
    'ó': 'o', 'ö': 'o', 'ő': 'o', 'õ': 'o',
    'ú': 'u', 'ü': 'u', 'ű': 'u', 'û': 'u',
})

_PUNCTUATION_RE = re.compile(r'[.,;:!?()\[\]{}"\'„”]')

# Reverse prefix matching needs at least this many characters
MIN_REVERSE_PREFIX = 4


def normalize_hungarian(text: str) -> str:
    """
    Lowercase and strip Hungarian accents.

    Example:
        >>> normalize_hungarian("Fizetési Határidő")
        'fizetesi hatarido'
    """
    if not text:
        return ""
    return text.lower().translate(_ACCENT_TABLE)


def tokenize(text: str) -> List[str]:
    """
    Split text into tokens on whitespace after blanking punctuation.

    Example:
        >>> tokenize("Összeg: 1 200 Ft.")
        ['Összeg', '1', '200', 'Ft']
    """
    if not text:
        return []
    return _PUNCTUATION_RE.sub(' ', text).split()


class StemDictionary:
    """
    Immutable stem -> variants dictionary with a word -> stem index.

    Attributes:
        stems: Read-only mapping of stem to normalized variants

    Example:
        >>> dictionary = StemDictionary()
        >>> dictionary.find_stem("számlázási")
        'szamla'
        >>> dictionary.find_stem("befizetésének")
        'befizet'
        >>> dictionary.find_stem("xyz") is None
        True
    """

    def __init__(self, stems: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        source = HUNGARIAN_STEMS if stems is None else stems

        normalized: Dict[str, Tuple[str, ...]] = {}
        index: Dict[str, str] = {}
        for stem, variants in source.items():
            stem_key = normalize_hungarian(stem)
            forms = tuple(dict.fromkeys(
                [stem_key] + [normalize_hungarian(v) for v in variants]
            ))
            normalized[stem_key] = forms
            for form in forms:
                # A form equal to its own stem always maps to that stem
                if form not in index or form == stem_key:
                    index[form] = stem_key

        self._stems = MappingProxyType(normalized)
        self._index = MappingProxyType(index)
        # Longest variants first for prefix matching
        self._by_length = tuple(sorted(index, key=lambda f: (-len(f), f)))

    @property
    def stems(self) -> Mapping[str, Tuple[str, ...]]:
        return self._stems

    def __len__(self) -> int:
        return len(self._stems)

    def __contains__(self, stem: str) -> bool:
        return stem in self._stems

    def find_stem(self, token: str) -> Optional[str]:
        """
        Resolve a token to its stem.

        Order:
            1. exact lookup of the normalized token
            2. the token starts with a known variant (longest variant wins;
               a tie between different stems is ambiguous)
            3. for tokens of 4+ characters, a known variant starts with the
               token, provided only one stem qualifies

        Returns:
            The stem, or None when nothing matches or the match is ambiguous.
        """
        word = normalize_hungarian(token).strip()
        if not word:
            return None

        stem = self._index.get(word)
        if stem is not None:
            return stem

        best_length = 0
        candidates = set()
        for form in self._by_length:
            if len(form) < best_length:
                break
            if word.startswith(form):
                best_length = len(form)
                candidates.add(self._index[form])
        if len(candidates) == 1:
            return candidates.pop()
        if len(candidates) > 1:
            logger.debug(f"Ambiguous stem for '{token}': {sorted(candidates)}")
            return None

        if len(word) >= MIN_REVERSE_PREFIX:
            reverse = {self._index[form] for form in self._by_length if form.startswith(word)}
            if len(reverse) == 1:
                return reverse.pop()
            if len(reverse) > 1:
                logger.debug(f"Ambiguous reverse stem for '{token}': {sorted(reverse)}")

        return None

    def stems_in(self, text: str) -> FrozenSet[str]:
        """Return every stem found among the tokens of ``text``."""
        found = set()
        for token in tokenize(text):
            stem = self.find_stem(token)
            if stem is not None:
                found.add(stem)
        return frozenset(found)

    def contains_stems(self, text: str, stems: Iterable[str]) -> bool:
        """True when any of ``stems`` occurs in ``text``."""
        wanted = set(stems)
        return bool(wanted & self.stems_in(text))

    def stem_coverage(self, text: str, required: Sequence[str]) -> float:
        """
        Fraction of required stems present in the text.

        Returns:
            |found ∩ required| / |required|, or 0.0 for an empty requirement.
        """
        required_set = set(required)
        if not required_set:
            return 0.0
        return len(required_set & self.stems_in(text)) / len(required_set)


@dataclass(frozen=True)
class StemAnalysis:
    """
    Stem evidence computed once during normalization.

    Attributes:
        tokens: Tokens of the analysed text
        found_stems: Stems present in the text
        required_stems: Stem set used for coverage
        coverage: Fraction of required stems found
        keyword_present: Whether any bill keyword stem occurs
    """
    tokens: Tuple[str, ...] = field(default_factory=tuple)
    found_stems: FrozenSet[str] = frozenset()
    required_stems: Tuple[str, ...] = field(default_factory=tuple)
    coverage: float = 0.0
    keyword_present: bool = False

    def to_dict(self) -> dict:
        return {
            'token_count': len(self.tokens),
            'found_stems': sorted(self.found_stems),
            'required_stems': list(self.required_stems),
            'coverage': self.coverage,
            'keyword_present': self.keyword_present,
        }


def analyze_stems(
    text: str,
    dictionary: StemDictionary,
    required_stems: Sequence[str],
    keyword_stems: Sequence[str]
) -> StemAnalysis:
    """
    Tokenize and stem a text once, deriving coverage and keyword presence.

    Args:
        text: Text to analyse.
        dictionary: Stem dictionary for this invocation.
        required_stems: Stems whose coverage is scored.
        keyword_stems: Stems that mark the text as bill-like.

    Returns:
        StemAnalysis.
    """
    tokens = tuple(tokenize(text))
    found = set()
    for token in tokens:
        stem = dictionary.find_stem(token)
        if stem is not None:
            found.add(stem)

    required = tuple(dict.fromkeys(required_stems))
    coverage = len(set(required) & found) / len(required) if required else 0.0
    keyword_present = bool(found & set(keyword_stems))

    logger.debug(
        f"Stem analysis: {len(tokens)} tokens, {len(found)} stems, "
        f"coverage={coverage:.2f}, keyword={keyword_present}"
    )

    return StemAnalysis(
        tokens=tokens,
        found_stems=frozenset(found),
        required_stems=required,
        coverage=coverage,
        keyword_present=keyword_present
    )
