"""
Positioned Text Data Classes.

This module defines the structures produced by the PDF decoder and consumed
by the layout reconstructor.

Classes:
    PositionedTextRun: Atomic text fragment with its page position
    Page: Decoded page with its runs, reading-order lines and plain text

Coordinates follow the top-down convention of the page engines: ``y`` grows
towards the bottom of the page.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class PositionedTextRun:
    """
    A single text fragment emitted by the PDF decoder for one page.

    Attributes:
        text: Decoded text of the run
        x: Horizontal position (text matrix translation)
        y: Vertical position (baseline, top-down)
        width: Width of the run's box
        height: Height of the run's box
        font_name: Font resource name, if known
        font_size: Font size in points, if known

    Example:
        >>> run = PositionedTextRun(text="Total:", x=72.0, y=100.0, width=30.0, height=12.0)
        >>> run.x2
        102.0
    """
    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    font_name: Optional[str] = None
    font_size: Optional[float] = None

    @property
    def x2(self) -> float:
        """Right edge."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom edge."""
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        """Center point of the run's box."""
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            'text': self.text,
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height,
            'font_name': self.font_name,
            'font_size': self.font_size
        }

    def __repr__(self) -> str:
        return f"PositionedTextRun('{self.text}', x={self.x:.1f}, y={self.y:.1f})"


@dataclass(frozen=True)
class Page:
    """
    A decoded page: runs, reading-order lines and plain text.

    Pages are read-only once produced. A page whose decode failed keeps its
    slot in the document with empty text and the failure reason in ``error``.

    Attributes:
        page_number: 1-based page number
        plain_text: Reading-order text, lines joined with newlines
        runs: Runs as emitted by the decoder
        lines: Runs grouped into reading-order lines
        width: Page width in points
        height: Page height in points
        error: Failure reason when the page could not be decoded
    """
    page_number: int
    plain_text: str = ""
    runs: Tuple[PositionedTextRun, ...] = field(default_factory=tuple)
    lines: Tuple[Tuple[PositionedTextRun, ...], ...] = field(default_factory=tuple)
    width: float = 0.0
    height: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True when the page could not be decoded."""
        return self.error is not None

    @property
    def is_empty(self) -> bool:
        """True when the page carries no text."""
        return not self.plain_text.strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format (runs omitted for brevity)."""
        return {
            'page_number': self.page_number,
            'plain_text': self.plain_text,
            'line_count': len(self.lines),
            'run_count': len(self.runs),
            'width': self.width,
            'height': self.height,
            'error': self.error
        }
