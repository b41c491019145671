"""
Helper Utilities Module.

Small generic helpers shared by the pipeline stages and the CLI.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - excerpt: Bounded text excerpt for diagnostics
    - content_fingerprint: Stable hash of document content
    - unique_in_order: Drop duplicates, keeping first-seen order
    - drop_adjacent_repeats: Collapse runs of equal consecutive items
"""

import hashlib
from itertools import groupby
from pathlib import Path
from typing import Iterable, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs/results")
        PosixPath('outputs/results')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Extract the lowercase file extension, including the dot.

    Example:
        >>> get_file_extension("statement.PDF")
        ".pdf"
        >>> get_file_extension("noextension")
        ""
    """
    return Path(filepath).suffix.lower()


def excerpt(text: str, limit: int = 500) -> str:
    """
    Return at most ``limit`` characters of ``text``.

    Args:
        text: Source text.
        limit: Maximum number of characters to keep.

    Returns:
        The leading part of the text.
    """
    if not text:
        return ""
    return text[:limit]


def content_fingerprint(*parts: Union[bytes, str, None]) -> str:
    """
    Compute a SHA-256 fingerprint over several byte/str parts.

    Parts are length-prefixed so that ("ab", "c") and ("a", "bc") do not
    collide. None parts are hashed as an explicit marker.
    """
    digest = hashlib.sha256()
    for part in parts:
        if part is None:
            digest.update(b'\x00none')
            continue
        raw = part.encode('utf-8') if isinstance(part, str) else bytes(part)
        digest.update(len(raw).to_bytes(8, 'big'))
        digest.update(raw)
    return digest.hexdigest()


def unique_in_order(items: Iterable) -> list:
    """Drop duplicates while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def drop_adjacent_repeats(items: Iterable) -> list:
    """Collapse runs of equal consecutive items; later repeats are kept."""
    return [key for key, _ in groupby(items)]
