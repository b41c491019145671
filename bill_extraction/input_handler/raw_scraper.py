"""
Raw PDF Text Scraper Module.

Fallback decoding tiers used when no structured page engine can produce
text. Both tiers work on the raw byte stream and recover text without
positions.

Tiers:
    - text_operators: string operands of Tj, TJ, ' and " inside BT/ET
      blocks, read from the raw file and from every inflatable content
      stream. Literal strings get PDF escape decoding; hex strings are
      decoded too, as UTF-16BE when they carry a FEFF byte order mark.
    - printable_runs: any run of printable ASCII/Latin-1 bytes of at least
      ``min_run`` characters is taken as a candidate word.
"""

import re
import zlib
from typing import Iterator, List, Optional, Tuple

from bill_extraction.utils.logger import get_logger
from bill_extraction.utils.helpers import drop_adjacent_repeats, unique_in_order

logger = get_logger(__name__)

_STREAM_RE = re.compile(rb'stream\r?\n(.*?)\r?\n?endstream', re.DOTALL)
_TEXT_BLOCK_RE = re.compile(r'\bBT\b(.*?)\bET\b', re.DOTALL)

_SIMPLE_ESCAPES = {
    'n': '\n',
    'r': '\r',
    't': '\t',
    'b': '\b',
    'f': '\f',
    '(': '(',
    ')': ')',
    '\\': '\\',
}

_DELIMITERS = set('()<>[]{}/%')
_WHITESPACE = set(' \t\r\n\f\x00')

# Operators that move to a new line of text
_NEWLINE_OPERATORS = {"T*", "'", '"'}
_SHOW_OPERATORS = {"Tj", "'", '"'}

_STRUCTURE_RUN_RE = re.compile(
    r'^(?:\d+\s+\d+\s+(?:obj|R)\b|endobj|endstream|stream|xref|trailer|startxref|%%EOF|%PDF-)'
)


# =============================================================================
# STRING DECODING
# =============================================================================

def decode_literal_string(body: str) -> str:
    """
    Apply PDF literal-string escape decoding.

    Handles octal escapes (1-3 digits), the single-character escapes
    \\n \\r \\t \\b \\f \\( \\) \\\\, and backslash line continuation. An
    unknown escape keeps the character and drops the backslash.

    Args:
        body: String body without the enclosing parentheses, one char per byte.

    Returns:
        Decoded text.

    Example:
        >>> decode_literal_string(r"Total \\(HUF\\): 12\\0565")
        'Total (HUF): 12.5'
    """
    out: List[str] = []
    i = 0
    length = len(body)

    while i < length:
        char = body[i]
        if char != '\\':
            out.append(char)
            i += 1
            continue

        i += 1
        if i >= length:
            break

        nxt = body[i]
        if nxt in '01234567':
            digits = nxt
            i += 1
            while i < length and len(digits) < 3 and body[i] in '01234567':
                digits += body[i]
                i += 1
            out.append(chr(int(digits, 8) & 0xFF))
            continue

        if nxt == '\r':
            # Line continuation: backslash-EOL produces nothing
            i += 1
            if i < length and body[i] == '\n':
                i += 1
            continue
        if nxt == '\n':
            i += 1
            continue

        out.append(_SIMPLE_ESCAPES.get(nxt, nxt))
        i += 1

    return _bytes_text(''.join(out))


def decode_hex_string(body: str) -> str:
    """
    Decode a PDF hex string body (``<48656C6C6F>`` without the brackets).

    Whitespace is ignored and an odd trailing digit is padded with 0.
    Strings starting with the FEFF byte order mark are UTF-16BE.
    """
    digits = re.sub(r'[^0-9A-Fa-f]', '', body)
    if len(digits) % 2:
        digits += '0'
    try:
        raw = bytes.fromhex(digits)
    except ValueError:
        return ""
    return _decode_string_bytes(raw)


def _bytes_text(latin: str) -> str:
    """Re-interpret a one-char-per-byte string, honouring a UTF-16BE BOM."""
    return _decode_string_bytes(latin.encode('latin-1', errors='replace'))


def _decode_string_bytes(raw: bytes) -> str:
    if raw.startswith(b'\xfe\xff'):
        return raw[2:].decode('utf-16-be', errors='replace')
    return raw.decode('latin-1')


# =============================================================================
# CONTENT STREAM TOKENIZING
# =============================================================================

def _read_literal(content: str, start: int) -> Tuple[str, int]:
    """Read a balanced literal string starting after '('. Returns (body, next index)."""
    depth = 1
    i = start
    length = len(content)
    while i < length:
        char = content[i]
        if char == '\\':
            i += 2
            continue
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth == 0:
                return content[start:i], i + 1
        i += 1
    return content[start:], length


def _tokens(content: str) -> Iterator[Tuple[str, object]]:
    """
    Yield (kind, value) tokens from a content stream fragment.

    Kinds: 'str' (decoded text), 'num' (float), 'op' (operator name),
    'array_start', 'array_end'. Names, dictionaries and comments are skipped.
    """
    i = 0
    length = len(content)
    while i < length:
        char = content[i]

        if char in _WHITESPACE:
            i += 1
        elif char == '%':
            while i < length and content[i] not in '\r\n':
                i += 1
        elif char == '(':
            body, i = _read_literal(content, i + 1)
            yield 'str', decode_literal_string(body)
        elif char == '<':
            if content.startswith('<<', i):
                i += 2
                continue
            end = content.find('>', i + 1)
            if end == -1:
                return
            yield 'str', decode_hex_string(content[i + 1:end])
            i = end + 1
        elif char == '>':
            i += 1
        elif char == '[':
            yield 'array_start', None
            i += 1
        elif char == ']':
            yield 'array_end', None
            i += 1
        elif char == '/':
            i += 1
            while i < length and content[i] not in _WHITESPACE and content[i] not in _DELIMITERS:
                i += 1
        elif char in '{}':
            i += 1
        else:
            start = i
            while i < length and content[i] not in _WHITESPACE and content[i] not in _DELIMITERS:
                i += 1
            word = content[start:i]
            if not word:
                i += 1
                continue
            try:
                yield 'num', float(word)
            except ValueError:
                yield 'op', word


def extract_text_block(block: str, space_threshold: float = -200.0) -> str:
    """
    Recover the text shown inside one BT ... ET block.

    Args:
        block: Content between BT and ET.
        space_threshold: TJ kerning offsets below this value become a space.

    Returns:
        Block text with line breaks at text-positioning operators.
    """
    parts: List[str] = []
    operands: List[object] = []
    array: Optional[List[object]] = None
    last_tm_y: Optional[float] = None

    def newline():
        if parts and not parts[-1].endswith('\n'):
            parts.append('\n')

    for kind, value in _tokens(block):
        if kind == 'array_start':
            array = []
            continue
        if kind == 'array_end':
            operands.append(array if array is not None else [])
            array = None
            continue
        if array is not None:
            array.append(value)
            continue
        if kind != 'op':
            operands.append(value)
            continue

        op = value
        if op in _NEWLINE_OPERATORS:
            newline()
        elif op in ('Td', 'TD'):
            numbers = [o for o in operands if isinstance(o, float)]
            if len(numbers) >= 2 and numbers[-1] != 0:
                newline()
            elif parts and not parts[-1].endswith(('\n', ' ')):
                parts.append(' ')
        elif op == 'Tm':
            numbers = [o for o in operands if isinstance(o, float)]
            y = numbers[-1] if len(numbers) == 6 else None
            if y is None or y != last_tm_y:
                newline()
            elif parts and not parts[-1].endswith(('\n', ' ')):
                parts.append(' ')
            last_tm_y = y

        if op in _SHOW_OPERATORS:
            strings = [o for o in operands if isinstance(o, str)]
            if strings:
                parts.append(strings[-1])
        elif op == 'TJ':
            arrays = [o for o in operands if isinstance(o, list)]
            if arrays:
                pieces = []
                for item in arrays[-1]:
                    if isinstance(item, str):
                        pieces.append(item)
                    elif isinstance(item, float) and item < space_threshold:
                        pieces.append(' ')
                parts.append(''.join(pieces))

        operands = []

    return ''.join(parts).strip()


# =============================================================================
# TIERS
# =============================================================================

def split_streams(data: bytes) -> Tuple[List[bytes], bytes]:
    """
    Separate inflatable streams from the rest of the file.

    Returns:
        (inflated stream contents, file bytes with those stream bodies
        removed). Streams that do not inflate stay in the remainder so
        uncompressed content streams are still scanned.
    """
    inflated = []
    remainder = []
    last = 0
    for match in _STREAM_RE.finditer(data):
        try:
            inflated.append(zlib.decompressobj().decompress(match.group(1)))
        except zlib.error:
            continue
        remainder.append(data[last:match.start(1)])
        last = match.end(1)
    remainder.append(data[last:])
    return inflated, b''.join(remainder)


def scrape_text_operators(data: bytes, space_threshold: float = -200.0) -> str:
    """
    Operator tier: recover text-show operands from the raw PDF bytes.

    Args:
        data: Raw PDF bytes.
        space_threshold: TJ kerning offset treated as a word gap.

    Returns:
        Recovered text (chunks joined with newlines), or "" when nothing
        could be recovered.
    """
    inflated, remainder = split_streams(data)
    sources = inflated + [remainder]
    chunks: List[str] = []

    for source in sources:
        content = source.decode('latin-1')
        for block in _TEXT_BLOCK_RE.finditer(content):
            text = extract_text_block(block.group(1), space_threshold)
            for line in text.split('\n'):
                line = line.strip()
                if line:
                    chunks.append(line)

    chunks = drop_adjacent_repeats(chunks)
    logger.debug(f"Operator tier recovered {len(chunks)} text chunks from {len(sources)} sources")
    return '\n'.join(chunks)


def scrape_printable_runs(data: bytes, min_run: int = 6) -> str:
    """
    Printable tier: take runs of printable ASCII/Latin-1 bytes as words.

    Args:
        data: Raw bytes.
        min_run: Minimum run length in characters.

    Returns:
        Candidate words joined with spaces, or "".
    """
    pattern = re.compile(rb'[\x20-\x7e\xa0-\xff]{%d,}' % max(1, int(min_run)))
    words = []
    for match in pattern.finditer(data):
        run = match.group(0).decode('latin-1').strip()
        if len(run) < min_run or _STRUCTURE_RUN_RE.match(run):
            continue
        words.append(run)

    logger.debug(f"Printable tier recovered {len(words)} candidate runs")
    return ' '.join(unique_in_order(words))
