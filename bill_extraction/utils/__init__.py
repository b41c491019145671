"""
Utility Module for the Bill Extraction System.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Common helpers
"""

from .logger import setup_logger, get_logger, set_level
from .helpers import ensure_directory, get_file_extension, content_fingerprint

__all__ = [
    'setup_logger',
    'get_logger',
    'set_level',
    'ensure_directory',
    'get_file_extension',
    'content_fingerprint'
]
