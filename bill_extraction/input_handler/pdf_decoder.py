"""
PDF Content Decoder Module.

This module turns a PDF byte buffer into per-page positioned text.

Decoding tiers, each attempted only when the previous one produced no
usable text:
    1. Structured page engines (PyMuPDF, then pdfplumber). Runs carry the
       text-matrix translation as their position.
    2. text_operators: raw Tj/TJ operand scraping (see raw_scraper).
    3. printable_runs: printable byte runs as candidate words.

Pages are decoded in a thread pool and reassembled in page order. Engines
whose library is not thread-safe (PyMuPDF) get a single worker. A page
that raises or exceeds the per-page timeout is recorded with empty text;
a global timeout cancels outstanding work and returns the completed pages
flagged as timed out.

Uses PyMuPDF (fitz) as the primary engine and pdfplumber as the secondary.
"""

import io
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF
import pdfplumber

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.utils.exceptions import DecodeError, UnsupportedDocumentError
from bill_extraction.layout import (
    PositionedTextRun,
    Page,
    reconstruct_page,
    text_only_page,
    failed_page,
    join_pages,
    page_summary,
)
from .binary_normalizer import is_pdf
from .raw_scraper import scrape_text_operators, scrape_printable_runs

logger = get_logger(__name__)

_FITZ_LOCK = threading.Lock()

TIER_TEXT_OPERATORS = "text_operators"
TIER_PRINTABLE_RUNS = "printable_runs"


@dataclass
class PageContent:
    """Runs and page size emitted by a page engine for one page."""
    runs: List[PositionedTextRun] = field(default_factory=list)
    width: float = 0.0
    height: float = 0.0


@dataclass
class DecodeOutcome:
    """
    Result of decoding one PDF.

    Attributes:
        pages: Pages in page order (failed pages included with empty text)
        tier: Name of the tier whose text was used, None if nothing decoded
        timed_out: True when the global timeout cut decoding short
        error: Description of a timeout or total failure
        page_errors: Page number -> failure reason
    """
    pages: List[Page] = field(default_factory=list)
    tier: Optional[str] = None
    timed_out: bool = False
    error: Optional[str] = None
    page_errors: Dict[int, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Document text: page texts joined in page order."""
        return join_pages(self.pages)

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())

    def to_dict(self) -> dict:
        return {
            'tier': self.tier,
            'timed_out': self.timed_out,
            'error': self.error,
            'page_count': len(self.pages),
            'page_errors': {str(k): v for k, v in self.page_errors.items()},
        }


# =============================================================================
# PAGE ENGINES
# =============================================================================

class PyMuPDFEngine:
    """
    Structured engine backed by PyMuPDF.

    MuPDF keeps global state and is not safe to call from several threads,
    so every fitz call runs under a module-wide lock and the decoder gives
    this engine a single worker.
    """

    name = "pymupdf"
    thread_safe = False

    def page_count(self, data: bytes) -> int:
        with _FITZ_LOCK, fitz.open(stream=data, filetype="pdf") as doc:
            return doc.page_count

    def decode_page(self, data: bytes, index: int) -> PageContent:
        with _FITZ_LOCK, fitz.open(stream=data, filetype="pdf") as doc:
            page = doc.load_page(index)
            content = PageContent(width=page.rect.width, height=page.rect.height)

            text_dict = page.get_text("dict")
            for block in text_dict.get("blocks", []):
                if block.get("type", 0) != 0:
                    continue
                for line in block.get("lines", []):
                    for span in line.get("spans", []):
                        text = span.get("text", "")
                        if not text.strip():
                            continue
                        x0, y0, x1, y1 = span["bbox"]
                        origin_x, origin_y = span.get("origin", (x0, y1))
                        content.runs.append(PositionedTextRun(
                            text=text,
                            x=float(origin_x),
                            y=float(origin_y),
                            width=float(x1 - x0),
                            height=float(y1 - y0),
                            font_name=span.get("font"),
                            font_size=span.get("size")
                        ))
            return content


class PdfPlumberEngine:
    """Structured engine backed by pdfplumber word extraction."""

    name = "pdfplumber"
    thread_safe = True

    def page_count(self, data: bytes) -> int:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return len(pdf.pages)

    def decode_page(self, data: bytes, index: int) -> PageContent:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            page = pdf.pages[index]
            content = PageContent(width=float(page.width), height=float(page.height))
            words = page.extract_words(extra_attrs=["fontname", "size"])
            for word in words:
                text = word.get("text", "")
                if not text.strip():
                    continue
                content.runs.append(PositionedTextRun(
                    text=text,
                    x=float(word["x0"]),
                    y=float(word["bottom"]),
                    width=float(word["x1"] - word["x0"]),
                    height=float(word["bottom"] - word["top"]),
                    font_name=word.get("fontname"),
                    font_size=word.get("size")
                ))
            return content


ENGINES = {
    PyMuPDFEngine.name: PyMuPDFEngine,
    PdfPlumberEngine.name: PdfPlumberEngine,
}


def build_engines(names: Sequence[str]) -> list:
    """Instantiate page engines by configured name, skipping unknown ones."""
    engines = []
    for name in names:
        engine_cls = ENGINES.get(name)
        if engine_cls is None:
            logger.warning(f"Unknown page engine '{name}', skipping")
            continue
        engines.append(engine_cls())
    return engines


# =============================================================================
# DECODER
# =============================================================================

class PDFDecoder:
    """
    Multi-tier PDF text decoder.

    Attributes:
        engines: Structured page engines in priority order
        timeout: Global decode budget in seconds
        page_timeout: Per-page wait budget in seconds
        max_workers: Thread pool size for page decoding
        min_printable_run: Minimum run length for the printable tier
        tj_space_threshold: Kerning offset treated as a word gap

    Example:
        >>> decoder = PDFDecoder()
        >>> outcome = decoder.decode(pdf_bytes)
        >>> print(outcome.tier, len(outcome.pages))
    """

    def __init__(
        self,
        engines: Optional[list] = None,
        timeout: Optional[float] = None,
        page_timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
        min_printable_run: Optional[int] = None,
        tj_space_threshold: Optional[float] = None,
        vertical_tolerance: Optional[float] = None
    ) -> None:
        if engines is None:
            engines = build_engines(get_config("decoder.engines", ["pymupdf", "pdfplumber"]))
        self.engines = list(engines)
        self.timeout = float(timeout if timeout is not None
                             else get_config("decoder.timeout_seconds", 30))
        self.page_timeout = float(page_timeout if page_timeout is not None
                                  else get_config("decoder.page_timeout_seconds", 10))
        self.max_workers = int(max_workers if max_workers is not None
                               else get_config("decoder.max_workers", 4))
        self.min_printable_run = int(min_printable_run if min_printable_run is not None
                                     else get_config("decoder.min_printable_run", 6))
        self.tj_space_threshold = float(tj_space_threshold if tj_space_threshold is not None
                                        else get_config("decoder.tj_space_threshold", -200))
        self.vertical_tolerance = vertical_tolerance

        logger.debug(
            f"PDFDecoder initialized (engines={[e.name for e in self.engines]}, "
            f"timeout={self.timeout}s, page_timeout={self.page_timeout}s)"
        )

    def decode(self, data: bytes, timeout: Optional[float] = None) -> DecodeOutcome:
        """
        Decode a PDF buffer into pages.

        Args:
            data: Normalized PDF bytes.
            timeout: Optional budget overriding the configured global timeout
                     (the orchestrator passes its remaining pipeline budget).

        Returns:
            DecodeOutcome; check ``timed_out`` and ``tier``.

        Raises:
            UnsupportedDocumentError: If the buffer lacks the %PDF- header.
            DecodeError: If no tier can interpret the document at all.
        """
        if not is_pdf(data):
            raise UnsupportedDocumentError(data[:8])

        budget = self.timeout if timeout is None else min(self.timeout, timeout)
        deadline = time.monotonic() + budget
        structured_opened = False
        structured: Optional[DecodeOutcome] = None

        for engine in self.engines:
            if time.monotonic() >= deadline:
                error = f"Decoding exceeded {budget:g}s before any page completed"
                logger.error(error)
                return DecodeOutcome(timed_out=True, error=error)
            try:
                count = engine.page_count(data)
            except Exception as e:
                logger.warning(f"Engine {engine.name} could not open document: {e}")
                continue

            structured_opened = True
            if count == 0:
                logger.warning(f"Engine {engine.name} reports zero pages")
                continue

            outcome = self._decode_pages(engine, data, count, deadline, budget)
            if outcome.timed_out:
                return outcome
            if outcome.has_text:
                with_text, failed = page_summary(outcome.pages)
                logger.info(
                    f"Decoded {len(outcome.pages)} page(s) with {engine.name} "
                    f"({with_text} with text, {failed} failed)"
                )
                return outcome

            logger.info(f"Engine {engine.name} produced no text, falling back")
            # Keep the page structure in case no later tier finds text either
            structured = outcome
            break

        text = scrape_text_operators(data, self.tj_space_threshold)
        if text.strip():
            logger.info("Recovered text from raw text operators")
            return DecodeOutcome(pages=[text_only_page(1, text)], tier=TIER_TEXT_OPERATORS)

        text = scrape_printable_runs(data, self.min_printable_run)
        if text.strip():
            logger.warning("Falling back to printable byte runs")
            return DecodeOutcome(pages=[text_only_page(1, text)], tier=TIER_PRINTABLE_RUNS)

        if structured is not None:
            return structured
        if structured_opened:
            return DecodeOutcome(pages=[], tier=None)

        raise DecodeError("No decoder tier could interpret the document",
                          {"engines": [e.name for e in self.engines]})

    def _decode_pages(
        self,
        engine,
        data: bytes,
        count: int,
        deadline: float,
        budget: float
    ) -> DecodeOutcome:
        """Decode all pages with one engine in a thread pool."""
        outcome = DecodeOutcome(tier=engine.name)
        pages: Dict[int, Page] = {}

        executor = ThreadPoolExecutor(
            max_workers=self._workers_for(engine, count),
            thread_name_prefix="pdf-page"
        )
        futures = [executor.submit(engine.decode_page, data, index) for index in range(count)]

        try:
            for index, future in enumerate(futures):
                number = index + 1
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    outcome.timed_out = True
                    break
                try:
                    content = future.result(timeout=min(self.page_timeout, remaining))
                except FutureTimeout:
                    if time.monotonic() >= deadline:
                        outcome.timed_out = True
                        break
                    reason = f"page decode exceeded {self.page_timeout:g}s"
                    pages[number] = failed_page(number, reason)
                    outcome.page_errors[number] = reason
                    # A running future cannot be cancelled; the worker finishes on its own
                    logger.warning(f"Page {number}: {reason}; worker left running")
                    continue
                except Exception as e:
                    reason = f"{type(e).__name__}: {e}"
                    pages[number] = failed_page(number, reason)
                    outcome.page_errors[number] = reason
                    logger.warning(f"Page {number} failed with {engine.name}: {reason}")
                    continue

                pages[number] = reconstruct_page(
                    number, content.runs, content.width, content.height,
                    tolerance=self.vertical_tolerance
                )

            if outcome.timed_out:
                self._collect_finished(engine, futures, pages, outcome)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        outcome.pages = [pages[n] for n in sorted(pages)]
        if outcome.timed_out:
            outcome.error = (
                f"Decoding exceeded {budget:g}s; "
                f"{len(outcome.pages)} of {count} page(s) completed"
            )
            logger.error(outcome.error)
        return outcome

    def _workers_for(self, engine, count: int) -> int:
        """Pool size for one engine: a single worker unless the engine is thread-safe."""
        if not getattr(engine, "thread_safe", True):
            return 1
        return max(1, min(self.max_workers, count))

    def _collect_finished(self, engine, futures, pages: Dict[int, Page], outcome: DecodeOutcome) -> None:
        """After a global timeout, keep pages whose futures already completed."""
        for index, future in enumerate(futures):
            number = index + 1
            if number in pages or not future.done() or future.cancelled():
                continue
            if future.exception() is not None:
                reason = f"{type(future.exception()).__name__}: {future.exception()}"
                pages[number] = failed_page(number, reason)
                outcome.page_errors[number] = reason
                continue
            content = future.result()
            pages[number] = reconstruct_page(
                number, content.runs, content.width, content.height,
                tolerance=self.vertical_tolerance
            )
