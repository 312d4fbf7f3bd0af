"""
Crawl State - run-scoped dedupe set and results budget
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


class CrawlState:
    """
    Seen URLs and the saved-record budget for a single run.

    Shared by the seed loop and every detail worker, so each read-modify-write
    happens under one lock. Budget counts both saved records and reservations
    for detail fetches still in flight; a URL is only fetched after `claim`
    reserved a slot for it, which keeps the saved total at or below
    `results_wanted` no matter how workers interleave.
    """

    def __init__(self, results_wanted: int, max_pages: int, dedupe: bool = True) -> None:
        self.results_wanted = max(int(results_wanted), 0)
        self.max_pages = max(int(max_pages), 1)
        self.dedupe = dedupe
        self.seen_urls: Set[str] = set()
        self.pages_visited: Dict[str, int] = {}
        self._saved = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def saved_count(self) -> int:
        with self._lock:
            return self._saved

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def is_exhausted(self) -> bool:
        return self.remaining_budget() <= 0

    def _remaining_locked(self) -> int:
        return max(self.results_wanted - self._saved - self._in_flight, 0)

    def _admit_locked(self, url: str) -> bool:
        if not self.dedupe:
            return True
        if url in self.seen_urls:
            return False
        self.seen_urls.add(url)
        return True

    def admit(self, url: str) -> bool:
        """True the first time `url` is seen this run, False afterwards."""
        with self._lock:
            return self._admit_locked(url)

    def remaining_budget(self) -> int:
        with self._lock:
            return self._remaining_locked()

    def claim(self, url: str) -> bool:
        """Budget check, admit and reservation as one step."""
        with self._lock:
            if self._remaining_locked() <= 0:
                return False
            if not self._admit_locked(url):
                return False
            self._in_flight += 1
            return True

    def release(self, n: int = 1) -> None:
        """Give back reservations for work that did not produce a record."""
        with self._lock:
            self._in_flight = max(self._in_flight - n, 0)

    def record_saved(self, n: int = 1) -> None:
        with self._lock:
            self._saved += n
            self._in_flight = max(self._in_flight - n, 0)

    def start_page(self, seed: str) -> Optional[int]:
        """Count a results page for `seed`; None once the page ceiling is reached."""
        with self._lock:
            visited = self.pages_visited.get(seed, 0)
            if visited >= self.max_pages:
                return None
            self.pages_visited[seed] = visited + 1
            return visited + 1

    def __repr__(self) -> str:
        return (
            f"<CrawlState saved={self._saved} in_flight={self._in_flight} "
            f"wanted={self.results_wanted} seen={len(self.seen_urls)}>"
        )
