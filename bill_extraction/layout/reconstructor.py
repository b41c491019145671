"""
Layout Reconstructor Module.

Clusters positioned text runs into reading-order lines.

Algorithm:
    1. Sort runs top-to-bottom; runs whose vertical positions are within the
       tolerance are ordered left-to-right.
    2. Walk the sorted runs once, growing a line while the next run stays
       within tolerance of the line's running average y.
    3. Re-sort each line left-to-right and join its runs with one space.
    4. Join lines with newlines to get the page text.
"""

from functools import cmp_to_key
from typing import Iterable, List, Optional, Sequence, Tuple

from config import get_config
from bill_extraction.utils.logger import get_logger
from .text_run import PositionedTextRun, Page

logger = get_logger(__name__)

DEFAULT_VERTICAL_TOLERANCE = 5.0


def _compare_runs(tolerance: float):
    def compare(a: PositionedTextRun, b: PositionedTextRun) -> int:
        if abs(a.y - b.y) <= tolerance:
            if a.x == b.x:
                return 0
            return -1 if a.x < b.x else 1
        return -1 if a.y < b.y else 1
    return compare


def sort_runs(
    runs: Iterable[PositionedTextRun],
    tolerance: float = DEFAULT_VERTICAL_TOLERANCE
) -> List[PositionedTextRun]:
    """
    Sort runs into reading order.

    Args:
        runs: Unordered runs of one page.
        tolerance: Vertical distance under which two runs count as the same row.

    Returns:
        Runs ordered top-to-bottom, left-to-right within a row.
    """
    # Tolerance comparison is not transitive; fix the starting order first
    ordered = sorted(runs, key=lambda r: (r.y, r.x, r.text))
    return sorted(ordered, key=cmp_to_key(_compare_runs(tolerance)))


def group_lines(
    sorted_runs: Sequence[PositionedTextRun],
    tolerance: float = DEFAULT_VERTICAL_TOLERANCE
) -> List[List[PositionedTextRun]]:
    """
    Group sorted runs into lines by running average y.

    Args:
        sorted_runs: Output of sort_runs().
        tolerance: Maximum distance between a run and its line's mean y.

    Returns:
        Lines, each re-sorted left-to-right.
    """
    lines: List[List[PositionedTextRun]] = []
    current: List[PositionedTextRun] = []
    y_total = 0.0

    for run in sorted_runs:
        if current and abs(run.y - y_total / len(current)) <= tolerance:
            current.append(run)
            y_total += run.y
            continue

        if current:
            lines.append(sorted(current, key=lambda r: r.x))
        current = [run]
        y_total = run.y

    if current:
        lines.append(sorted(current, key=lambda r: r.x))

    return lines


def line_text(line: Iterable[PositionedTextRun]) -> str:
    """Join a line's non-empty run texts with a single space."""
    return ' '.join(run.text.strip() for run in line if run.text.strip())


def reconstruct_page(
    page_number: int,
    runs: Iterable[PositionedTextRun],
    width: float = 0.0,
    height: float = 0.0,
    tolerance: Optional[float] = None
) -> Page:
    """
    Build a Page with reading-order lines and text from raw runs.

    Args:
        page_number: 1-based page number.
        runs: Runs emitted for the page, in any order.
        width: Page width.
        height: Page height.
        tolerance: Vertical tolerance; read from layout.vertical_tolerance
                   when omitted.

    Returns:
        Read-only Page.
    """
    if tolerance is None:
        tolerance = float(get_config("layout.vertical_tolerance", DEFAULT_VERTICAL_TOLERANCE))

    kept = tuple(run for run in runs if run.text and run.text.strip())
    lines = group_lines(sort_runs(kept, tolerance), tolerance)
    texts = [line_text(line) for line in lines]

    logger.debug(f"Page {page_number}: {len(kept)} runs -> {len(lines)} lines")

    return Page(
        page_number=page_number,
        plain_text='\n'.join(t for t in texts if t),
        runs=kept,
        lines=tuple(tuple(line) for line in lines),
        width=width,
        height=height
    )


def text_only_page(page_number: int, text: str) -> Page:
    """Wrap position-less text recovered by a fallback tier as a Page."""
    return Page(page_number=page_number, plain_text=text)


def failed_page(page_number: int, reason: str) -> Page:
    """Record a page whose decode raised or timed out."""
    return Page(page_number=page_number, error=reason)


def join_pages(pages: Iterable[Page]) -> str:
    """Concatenate page texts in page order, skipping empty pages."""
    ordered = sorted(pages, key=lambda p: p.page_number)
    return '\n'.join(p.plain_text for p in ordered if p.plain_text)


def page_summary(pages: Sequence[Page]) -> Tuple[int, int]:
    """Return (pages with text, failed pages)."""
    with_text = sum(1 for p in pages if not p.is_empty)
    failed = sum(1 for p in pages if p.failed)
    return with_text, failed
