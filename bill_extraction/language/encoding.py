"""
Encoding repair for Hungarian text.

UTF-8 bytes that were decoded as Latin-1 or Windows-1252 show up as pairs
like "Ã¡" in place of "á". Repair is attempted only when such a marker is
present, so clean text is returned unchanged.
"""

import re

from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)

# Lead bytes of two-byte UTF-8 sequences for Latin letters, seen as Latin-1
_MOJIBAKE_MARKER_RE = re.compile(r'[ÃÅ][\x80-\xbfŒ-™]')

# Accented letters whose Latin-2 code points land on Latin-1 look-alikes
_LOOKALIKE_MAP = str.maketrans({
    'õ': 'ő', 'Õ': 'Ő',
    'û': 'ű', 'Û': 'Ű',
})

# Sequences left behind when a whole-string re-decode is not possible
_SEQUENCE_MAP = (
    ('Ã¡', 'á'), ('Ã©', 'é'), ('Ã\xad', 'í'), ('Ã³', 'ó'), ('Ã¶', 'ö'),
    ('Å‘', 'ő'), ('Å\x91', 'ő'), ('Ãº', 'ú'), ('Ã¼', 'ü'), ('Å±', 'ű'),
    ('Ã\x81', 'Á'), ('Ã‰', 'É'), ('Ã\x89', 'É'), ('Ã\x8d', 'Í'),
    ('Ã“', 'Ó'), ('Ã\x93', 'Ó'), ('Ã–', 'Ö'), ('Ã\x96', 'Ö'),
    ('Å\x90', 'Ő'), ('Ãš', 'Ú'), ('Ã\x9a', 'Ú'), ('Ãœ', 'Ü'),
    ('Ã\x9c', 'Ü'), ('Å°', 'Ű'),
)


def has_mojibake(text: str) -> bool:
    """True when ``text`` contains a UTF-8-as-Latin-1 marker sequence."""
    return bool(text) and _MOJIBAKE_MARKER_RE.search(text) is not None


def _redecode(text: str) -> str:
    for charset in ('latin-1', 'cp1252'):
        try:
            return text.encode(charset).decode('utf-8')
        except (UnicodeEncodeError, UnicodeDecodeError):
            continue
    return text


def repair_mojibake(text: str) -> str:
    """
    Repair Hungarian text that went through a wrong single-byte decode.

    The whole string is re-encoded as Latin-1 (then Windows-1252) and
    decoded as UTF-8. When that fails because the text mixes clean and
    broken characters, known byte-pair sequences are replaced one by one.
    Finally the õ/û look-alikes are mapped to ő/ű.

    Args:
        text: Possibly mis-decoded text.

    Returns:
        Repaired text, or the input unchanged when no marker is present.
    """
    if not has_mojibake(text):
        return text

    repaired = _redecode(text)
    if repaired == text:
        for broken, fixed in _SEQUENCE_MAP:
            repaired = repaired.replace(broken, fixed)

    repaired = repaired.translate(_LOOKALIKE_MAP)
    logger.debug("Repaired mis-decoded Hungarian text")
    return repaired
