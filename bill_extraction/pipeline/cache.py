"""
Result Cache Module.

A bounded LRU cache of extraction results keyed by a content fingerprint.
Entries are deep-copied on the way in and out so cached results never
alias the objects returned to callers.
"""

import copy
import threading
from collections import OrderedDict
from typing import Optional

from bill_extraction.utils.logger import get_logger
from bill_extraction.extraction.extraction_result import ExtractionResult

logger = get_logger(__name__)


class ResultCache:
    """
    Thread-safe LRU cache for ExtractionResult objects.

    Attributes:
        maxsize: Maximum number of entries; 0 disables caching

    Example:
        >>> cache = ResultCache(maxsize=2)
        >>> cache.put("key", result)
        >>> cache.get("key") is result
        False
    """

    def __init__(self, maxsize: int = 64) -> None:
        self.maxsize = max(0, int(maxsize))
        self._entries: "OrderedDict[str, ExtractionResult]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self.maxsize > 0

    def get(self, key: str) -> Optional[ExtractionResult]:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return copy.deepcopy(entry)

    def put(self, key: str, result: ExtractionResult) -> None:
        if not self.enabled:
            return
        stored = copy.deepcopy(result)
        with self._lock:
            self._entries[key] = stored
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached result {evicted[:12]}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
