"""
Layout Module for the Bill Extraction System.

This module turns positioned text runs into reading-order text:
    - PositionedTextRun / Page data classes
    - Tolerance-based line clustering
"""

from .text_run import PositionedTextRun, Page
from .reconstructor import (
    sort_runs,
    group_lines,
    reconstruct_page,
    text_only_page,
    failed_page,
    join_pages,
    page_summary,
)

__all__ = [
    'PositionedTextRun',
    'Page',
    'sort_runs',
    'group_lines',
    'reconstruct_page',
    'text_only_page',
    'failed_page',
    'join_pages',
    'page_summary',
]
