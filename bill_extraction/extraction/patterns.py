"""
Field Pattern Banks.

Every field is extracted by a FallbackChain: an ordered tuple of pure
FieldRule callables. The first rule producing a non-empty capture wins.
Banks are keyed by language and field; for a document the banks of its
own language are tried first, then the banks of the other languages.

Rule names follow ``<language>.<field>.<label>`` and end up in the
provenance of the extracted value.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterator, List, Mapping, Optional, Pattern, Tuple


# Amount shapes: grouped thousands ("45 678", "1.234.567", "1,234") or a
# plain digit run, with an optional 1-2 digit decimal part
AMOUNT_NUMBER = r'(?:\d{1,3}(?:[., ]\d{3})+|\d+)(?:[.,]\d{1,2})?(?!\d)'

CURRENCY_PREFIX = r'(?:[$€£]|USD|EUR|GBP|HUF|Ft\.?)?'

EN_DATE = (
    r'([A-Za-z]{3,9}\.? \d{1,2}(?:st|nd|rd|th)?,? \d{4}'
    r'|\d{1,2}/\d{1,2}/\d{4}'
    r'|\d{4}-\d{1,2}-\d{1,2})'
)

HU_DATE = (
    r'(\d{4}\s*[.\-/]\s*\d{1,2}\s*[.\-/]\s*\d{1,2}\.?'
    r'|\d{4}\.?\s*[A-Za-zÁÉÍÓÖŐÚÜŰáéíóöőúüű]+\s+\d{1,2}\.?'
    r'|\d{1,2}\.\s*\d{1,2}\.\s*\d{4})'
)

IDENTIFIER = r'([A-Z0-9][A-Z0-9\-]{3,})'
INVOICE_IDENTIFIER = r'([A-Z0-9][A-Z0-9\-/]{2,})'

COMPANY_SUFFIXES = r'(?:Zrt|Kft|Nyrt|Bt|Kkt|Inc|LLC|Ltd|Corp|GmbH|plc)'

LABEL_SEPARATOR = r'\s*(?:\([^)\n]*\))?\s*:?\s*'


@dataclass(frozen=True)
class Match:
    """A rule hit: the captured value, the rule name and its span in the text."""
    value: str
    rule: str
    start: int = 0
    end: int = 0


@dataclass(frozen=True)
class FieldRule:
    """
    A named regular-expression rule returning the first non-empty capture.

    Example:
        >>> rule = FieldRule.compile("en.amount.total", r'total\\s*:\\s*(\\d+)')
        >>> rule("Total: 42").value
        '42'
    """
    name: str
    regex: Pattern
    group: int = 1

    @classmethod
    def compile(cls, name: str, pattern: str, flags: int = re.IGNORECASE, group: int = 1) -> 'FieldRule':
        return cls(name=name, regex=re.compile(pattern, flags), group=group)

    @property
    def language(self) -> str:
        return self.name.split('.', 1)[0]

    def iter_matches(self, text: str) -> Iterator[Match]:
        for found in self.regex.finditer(text):
            value = (found.group(self.group) or '').strip()
            if value:
                yield Match(value=value, rule=self.name, start=found.start(self.group), end=found.end(self.group))

    def __call__(self, text: str) -> Optional[Match]:
        return next(self.iter_matches(text), None)


@dataclass(frozen=True)
class FallbackChain:
    """Ordered rules for one field; earlier rules take priority."""
    field: str
    rules: Tuple[FieldRule, ...]

    def first_match(self, text: str, accept: Optional[Callable[[Match], bool]] = None) -> Optional[Match]:
        """
        Return the first match of the first rule that produces one.

        Args:
            text: Text to search.
            accept: Optional predicate; rejected matches are skipped and the
                    search continues with the next hit.
        """
        if not text:
            return None
        for rule in self.rules:
            for match in rule.iter_matches(text):
                if accept is None or accept(match):
                    return match
        return None

    def all_matches(self, text: str) -> List[Match]:
        """Every hit of every rule, in rule order."""
        if not text:
            return []
        return [match for rule in self.rules for match in rule.iter_matches(text)]

    def __add__(self, other: 'FallbackChain') -> 'FallbackChain':
        return FallbackChain(self.field, self.rules + other.rules)

    def __len__(self) -> int:
        return len(self.rules)


def _labelled(language: str, field: str, labels: Tuple[Tuple[str, str], ...], capture: str) -> Tuple[FieldRule, ...]:
    return tuple(
        FieldRule.compile(f"{language}.{field}.{name}", label + LABEL_SEPARATOR + capture)
        for name, label in labels
    )


# =============================================================================
# ENGLISH
# =============================================================================

_EN_AMOUNT = _labelled('en', 'amount', (
    ('total_amount_due', r'\btotal\s+(?:amount\s+)?due'),
    ('amount_due', r'\bamount\s+due'),
    ('current_charges', r'\bcurrent\s+charges'),
    ('balance_due', r'\bbalance\s+due'),
    ('grand_total', r'\bgrand\s+total'),
    ('total', r'\btotal(?:\s+amount)?(?=\s*:)'),
), CURRENCY_PREFIX + r'\s*(' + AMOUNT_NUMBER + r')')

_EN_DUE_DATE = _labelled('en', 'due_date', (
    ('due_date', r'\bdue\s+(?:date|by|on)'),
    ('pay_by', r'\bpay(?:ment)?\s+(?:due\s+)?by'),
    ('payment_due', r'\bpayment\s+due'),
), EN_DATE)

_EN_ISSUE_DATE = _labelled('en', 'issue_date', (
    ('statement_date', r'\b(?:statement|invoice|bill|billing|issue)\s+date'),
    ('date_issued', r'\bdate\s+(?:issued|of\s+issue)'),
    ('dated', r'\bdated?(?=\s*:)'),
), EN_DATE)

_EN_ACCOUNT = _labelled('en', 'account_number', (
    ('account', r'\baccount\s*(?:number|no\.|no\b|#|id)'),
    ('customer', r'\bcustomer\s*(?:number|no\.|no\b|#|id)'),
    ('policy', r'\bpolicy\s*(?:number|no\.|no\b|#)'),
    ('member', r'\bmember\s*(?:number|no\.|no\b|#|id)'),
), IDENTIFIER)

_EN_INVOICE = _labelled('en', 'invoice_number', (
    ('invoice', r'\binvoice\s*(?:number|no\.|no\b|#)'),
    ('bill', r'\bbill\s*(?:number|no\.|no\b|#)'),
    ('statement', r'\bstatement\s*(?:number|no\.|no\b|#)'),
), INVOICE_IDENTIFIER) + (
    FieldRule.compile('en.invoice_number.inv_prefix', r'\b(INV[-/]?\d[A-Z0-9\-/]*)'),
)

_EN_VENDOR = (
    FieldRule.compile('en.vendor.label', r'\b(?:vendor|biller|payee|company|from)\s*:[ \t]*([^\n]{3,80})'),
)

# =============================================================================
# HUNGARIAN
# =============================================================================

_HU_AMOUNT = _labelled('hu', 'amount', (
    ('fizetendo_osszeg', r'\bfizetendő\s+(?:összeg|összesen)'),
    ('brutto_osszesen', r'\bbruttó\s+(?:\w+\s+)?(?:összesen|összeg)'),
    ('vegosszeg', r'\bvégösszeg'),
    ('szamla_osszege', r'\bszámla\s+összege'),
    ('fizetendo', r'\bfizetendő'),
    ('osszesen', r'\bösszesen'),
), CURRENCY_PREFIX + r'\s*(' + AMOUNT_NUMBER + r')')

_HU_DUE_DATE = _labelled('hu', 'due_date', (
    ('fizetesi_hatarido', r'\bfizetési\s+határid[őo]'),
    ('befizetesi_hatarido', r'\bbefizetési\s+határid[őo]'),
    ('esedekesseg', r'\besedékesség(?:\s+(?:dátuma|napja|ideje))?'),
    ('hatarido', r'\bhatárid[őo]'),
), HU_DATE)

_HU_ISSUE_DATE = _labelled('hu', 'issue_date', (
    ('szamla_kelte', r'\bszámla\s+kelte'),
    ('kiallitas_datuma', r'\bkiállítás\s+dátuma'),
    ('kelt', r'\bkelt(?:e)?\b'),
), HU_DATE)

_HU_ACCOUNT = _labelled('hu', 'account_number', (
    ('ugyfelszam', r'\bügyfélszám'),
    ('felhasznalo_azonosito', r'\bfelhasználó\s+azonosító\s+száma'),
    ('vevo_azonosito', r'\bvevő\s*\(\s*fizető\s*\)\s*azonosító'),
    ('ugyfel_azonosito', r'\bügyfél\s*azonosító'),
    ('fogyaszto_azonosito', r'\bfogyasztó\s*azonosító'),
    ('szerzodesszam', r'\bszerződésszám'),
    ('azonosito', r'\bazonosító'),
), IDENTIFIER)

_HU_INVOICE = _labelled('hu', 'invoice_number', (
    ('szamla_sorszama', r'\bszámla\s+sorszáma'),
    ('sorszam', r'\bsorszám'),
    ('szamlaszam', r'\bszámlaszám'),
), INVOICE_IDENTIFIER)

_HU_VENDOR = (
    FieldRule.compile('hu.vendor.szolgaltato_neve', r'\bszolgáltató\s+neve\s*:[ \t]*([^\n]{3,80})'),
    FieldRule.compile('hu.vendor.kibocsato', r'\b(?:számla)?kibocsátó\s*:[ \t]*([^\n]{3,80})'),
    FieldRule.compile('hu.vendor.elado', r'\beladó\s*:[ \t]*([^\n]{3,80})'),
    FieldRule.compile('hu.vendor.szolgaltato', r'\bszolgáltató\s*:[ \t]*([^\n]{3,80})'),
)

# Lines ending in a company form, in either language
COMPANY_LINE_RULE = FieldRule.compile(
    'any.vendor.company_suffix',
    r'^[ \t]*([^\n:]{2,80}?\b' + COMPANY_SUFFIXES + r'\.?)[ \t]*$',
    flags=re.IGNORECASE | re.MULTILINE
)


PATTERN_BANKS: Mapping[str, Mapping[str, Tuple[FieldRule, ...]]] = MappingProxyType({
    'en': MappingProxyType({
        'amount': _EN_AMOUNT,
        'due_date': _EN_DUE_DATE,
        'issue_date': _EN_ISSUE_DATE,
        'account_number': _EN_ACCOUNT,
        'invoice_number': _EN_INVOICE,
        'vendor': _EN_VENDOR,
    }),
    'hu': MappingProxyType({
        'amount': _HU_AMOUNT,
        'due_date': _HU_DUE_DATE,
        'issue_date': _HU_ISSUE_DATE,
        'account_number': _HU_ACCOUNT,
        'invoice_number': _HU_INVOICE,
        'vendor': _HU_VENDOR,
    }),
})

PATTERN_FIELDS = ('amount', 'due_date', 'issue_date', 'account_number', 'invoice_number', 'vendor')


def language_order(language: str) -> Tuple[str, ...]:
    """The document language first, then every other bank language."""
    others = tuple(lang for lang in PATTERN_BANKS if lang != language)
    return ((language,) + others) if language in PATTERN_BANKS else tuple(PATTERN_BANKS)


def chain_for(field: str, language: str) -> FallbackChain:
    """
    Build the fallback chain for a field and document language.

    Example:
        >>> chain = chain_for("amount", "hu")
        >>> chain.rules[0].name
        'hu.amount.fizetendo_osszeg'
    """
    rules: Tuple[FieldRule, ...] = ()
    for lang in language_order(language):
        rules += PATTERN_BANKS[lang].get(field, ())
    return FallbackChain(field=field, rules=rules)


# =============================================================================
# DIRECT FALLBACK
# =============================================================================

CURRENCY_ADJACENT_RULES = (
    FieldRule.compile(
        'fallback.amount.currency_prefix',
        r'(?:[$€£]|\b(?:USD|EUR|GBP|HUF)\b)\s*(' + AMOUNT_NUMBER + r')'
    ),
    FieldRule.compile(
        'fallback.amount.currency_suffix',
        r'(?<![\d.,])(' + AMOUNT_NUMBER + r')\s*(?:Ft\b|HUF\b|EUR\b|USD\b|GBP\b|€|forint)'
    ),
)

CURRENCY_ADJACENT_CHAIN = FallbackChain('amount', CURRENCY_ADJACENT_RULES)

# Context keywords used to score amount candidates
BILL_KEYWORDS = (
    'bill', 'invoice', 'statement', 'amount', 'charges', 'payment', 'account',
    'számla', 'fizet', 'díj', 'összeg', 'befizet', 'szolgáltat',
)

TOTAL_DUE_KEYWORDS = (
    'total', 'due', 'balance', 'pay',
    'összesen', 'fizetendő', 'végösszeg', 'határidő', 'esedékes',
)

_BILL_KEYWORD_RE = re.compile(
    r'\b(?:' + '|'.join(re.escape(k) for k in BILL_KEYWORDS) + r')', re.IGNORECASE
)
_TOTAL_DUE_KEYWORD_RE = re.compile(
    r'\b(?:' + '|'.join(re.escape(k) for k in TOTAL_DUE_KEYWORDS) + r')', re.IGNORECASE
)


def has_bill_keyword(text: str) -> bool:
    return bool(text) and _BILL_KEYWORD_RE.search(text) is not None


def has_total_keyword(text: str) -> bool:
    return bool(text) and _TOTAL_DUE_KEYWORD_RE.search(text) is not None
