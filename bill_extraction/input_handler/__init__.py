"""
Input Handler Module for the Bill Extraction System.

This module provides functionality for:
    - Validating and normalizing raw document bytes
    - Detecting the document signature (PDF vs plain text)
    - Decoding PDFs into per-page positioned text, with fallback tiers
"""

from .binary_normalizer import (
    RawDocument,
    SourceKind,
    normalize_document,
    detect_signature,
    decode_plain_text,
    is_pdf,
)
from .pdf_decoder import PDFDecoder, DecodeOutcome, PageContent, PyMuPDFEngine, PdfPlumberEngine

__all__ = [
    'RawDocument',
    'SourceKind',
    'normalize_document',
    'detect_signature',
    'decode_plain_text',
    'is_pdf',
    'PDFDecoder',
    'DecodeOutcome',
    'PageContent',
    'PyMuPDFEngine',
    'PdfPlumberEngine',
]
