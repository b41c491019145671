"""
Binary Normalizer Module.

Validates raw document bytes and produces the canonical RawDocument that
enters the pipeline.

    - Accepts bytes-like input (bytes, bytearray, memoryview)
    - Strips a UTF-8 byte order mark
    - Skips leading junk before a late %PDF- header, as PDF readers do
    - Detects the document signature (pdf vs plain-text)
    - Decodes plain-text buffers through a charset chain
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.utils.exceptions import InvalidInputError

logger = get_logger(__name__)

PDF_SIGNATURE = b"%PDF-"
UTF8_BOM = b"\xef\xbb\xbf"

DEFAULT_TEXT_ENCODINGS = ("utf-8", "iso-8859-2", "windows-1250")

BytesLike = Union[bytes, bytearray, memoryview]


class SourceKind(str, Enum):
    """Declared kind of a raw document."""

    PDF = "pdf"
    PLAIN_TEXT = "plain-text"


@dataclass(frozen=True)
class RawDocument:
    """
    Immutable byte buffer with its source kind.

    Attributes:
        data: Normalized document bytes
        source_kind: pdf or plain-text
        file_name: Optional original file name
    """
    data: bytes
    source_kind: SourceKind
    file_name: Optional[str] = None

    @property
    def is_pdf(self) -> bool:
        return self.source_kind == SourceKind.PDF

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"RawDocument(kind='{self.source_kind.value}', "
            f"size={len(self.data)}, file_name={self.file_name!r})"
        )


def is_pdf(data: bytes) -> bool:
    """True when the first five bytes are the PDF signature."""
    return data[:5] == PDF_SIGNATURE


def detect_signature(data: bytes) -> SourceKind:
    """
    Detect the document type from its leading bytes.

    Args:
        data: Normalized bytes.

    Returns:
        SourceKind.PDF when the buffer starts with %PDF-, else PLAIN_TEXT.
    """
    return SourceKind.PDF if is_pdf(data) else SourceKind.PLAIN_TEXT


def _to_bytes(data: BytesLike) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise InvalidInputError(
        "Raw document must be bytes-like",
        {"type": type(data).__name__}
    )


def _skip_to_header(data: bytes, limit: int) -> bytes:
    """Drop bytes before a %PDF- header found within the first ``limit`` bytes."""
    if is_pdf(data):
        return data

    position = data.find(PDF_SIGNATURE, 0, limit + len(PDF_SIGNATURE))
    if position > 0:
        logger.debug(f"Skipping {position} leading bytes before PDF header")
        return data[position:]
    return data


def _parse_kind(source_kind) -> Optional[SourceKind]:
    if source_kind is None:
        return None
    try:
        return SourceKind(source_kind)
    except ValueError:
        raise InvalidInputError(
            f"Unknown source kind: {source_kind!r}",
            {"supported": [k.value for k in SourceKind]}
        )


def normalize_document(
    data: BytesLike,
    source_kind: Optional[Union[SourceKind, str]] = None,
    file_name: Optional[str] = None
) -> RawDocument:
    """
    Validate and normalize raw bytes into a RawDocument.

    Args:
        data: Owned byte buffer (already transport-decoded by the caller).
        source_kind: Declared kind; detected from the signature when omitted.
        file_name: Optional original file name.

    Returns:
        RawDocument with canonical bytes.

    Raises:
        InvalidInputError: If the buffer is empty, not bytes-like, or the
                           declared kind is unknown.

    Example:
        >>> doc = normalize_document(b"%PDF-1.7 ...")
        >>> doc.source_kind
        <SourceKind.PDF: 'pdf'>
    """
    raw = _to_bytes(data)
    if not raw:
        raise InvalidInputError("Raw document is empty", {"file_name": file_name})

    declared = _parse_kind(source_kind)

    if raw.startswith(UTF8_BOM):
        raw = raw[len(UTF8_BOM):]

    if declared == SourceKind.PLAIN_TEXT:
        return RawDocument(data=raw, source_kind=declared, file_name=file_name)

    limit = int(get_config("input.max_leading_garbage", 1024))
    normalized = _skip_to_header(raw, limit)
    detected = detect_signature(normalized)

    if declared is None:
        kind = detected
    else:
        kind = declared
        if kind != detected:
            # Kept as pdf; the decoder reports the bad signature as a DecodeError
            logger.warning(
                f"Declared kind '{kind.value}' disagrees with signature "
                f"'{detected.value}' for {file_name or 'document'}"
            )

    return RawDocument(data=normalized, source_kind=kind, file_name=file_name)


def decode_plain_text(data: bytes, encodings: Optional[Sequence[str]] = None) -> str:
    """
    Decode a plain-text buffer through the configured charset chain.

    The chain is tried strictly in order; the last encoding is applied with
    replacement so that decoding always yields text.

    Args:
        data: Raw bytes.
        encodings: Charset chain; defaults to input.text_encodings.

    Returns:
        Decoded text.
    """
    if encodings is None:
        encodings = get_config("input.text_encodings", list(DEFAULT_TEXT_ENCODINGS))
    encodings = list(encodings) or list(DEFAULT_TEXT_ENCODINGS)

    if data.startswith(UTF8_BOM):
        data = data[len(UTF8_BOM):]

    for encoding in encodings[:-1]:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            logger.debug(f"Text is not valid {encoding}, trying next charset")

    return data.decode(encodings[-1], errors="replace")
