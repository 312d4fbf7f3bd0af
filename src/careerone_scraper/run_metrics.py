"""
Run Metrics - counters and failure events for one crawl, written as JSON at exit
"""

import json
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

# Every run reports these, even when they stay at zero
CRAWL_COUNTERS = (
    "pages_fetched",
    "empty_pages",
    "listing_failures",
    "details_fetched",
    "detail_failures",
    "save_failures",
    "duplicates_skipped",
    "blocked_retries",
    "records_saved",
)

MAX_EVENTS = 500


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _make_run_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _zeroed_counters() -> Dict[str, int]:
    return {name: 0 for name in CRAWL_COUNTERS}


@dataclass
class RunMetrics:
    """
    Crawl counters shared by the seed loop and the detail workers.

    Partial success is normal: failures are counted here and the run goes on.
    Events keep the first MAX_EVENTS failures; the rest only bump
    `events_dropped`.
    """

    source: str
    run_id: str = field(default_factory=_make_run_id)
    started_at_iso: str = field(default_factory=_utc_now_iso)
    started_at_monotonic: float = field(default_factory=time.monotonic)
    ended_at_iso: Optional[str] = None
    duration_seconds: Optional[float] = None
    counters: Dict[str, int] = field(default_factory=_zeroed_counters)
    state: Dict[str, Any] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)
    events_dropped: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self.counters[key] = self.counters.get(key, 0) + int(amount)

    def get(self, key: str) -> int:
        with self._lock:
            return self.counters.get(key, 0)

    def record_event(self, kind: str, **data: Any) -> None:
        event = {"t": _utc_now_iso(), "kind": kind}
        event.update({k: v for k, v in data.items() if v is not None})
        with self._lock:
            if len(self.events) >= MAX_EVENTS:
                self.events_dropped += 1
                return
            self.events.append(event)

    def capture_state(self, state) -> None:
        """Copy the crawl state's final numbers into the report."""
        with self._lock:
            self.state = {
                "saved": state.saved_count,
                "results_wanted": state.results_wanted,
                "seen_urls": len(state.seen_urls),
                "pages_per_seed": dict(state.pages_visited),
            }

    def finish(self) -> None:
        if self.ended_at_iso is None:
            self.ended_at_iso = _utc_now_iso()
            self.duration_seconds = max(time.monotonic() - self.started_at_monotonic, 0.0)

    def summary(self) -> str:
        """One line for logs and the console"""
        with self._lock:
            c = dict(self.counters)
        return (
            f"pages={c.get('pages_fetched', 0)} (empty {c.get('empty_pages', 0)}, "
            f"failed {c.get('listing_failures', 0)}), "
            f"details={c.get('details_fetched', 0)} (failed {c.get('detail_failures', 0)}), "
            f"duplicates={c.get('duplicates_skipped', 0)}, saved={c.get('records_saved', 0)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        duration = self.duration_seconds
        if duration is None:
            duration = max(time.monotonic() - self.started_at_monotonic, 0.0)
        with self._lock:
            payload: Dict[str, Any] = {
                "source": self.source,
                "run_id": self.run_id,
                "started_at": self.started_at_iso,
                "ended_at": self.ended_at_iso or _utc_now_iso(),
                "duration_seconds": round(duration, 3),
                "counters": dict(self.counters),
                "state": dict(self.state),
                "events": list(self.events),
            }
            if self.events_dropped:
                payload["events_dropped"] = self.events_dropped
        return payload

    def write_json(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
        return path
