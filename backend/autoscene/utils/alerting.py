import logging
import time
from collections import deque
from threading import Lock
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_THRESHOLDS = {
    "ANALYZE_DEGRADED": 5,
    "CAPTION_DEGRADED": 5,
    "CONFIG_FALLBACK_TO_MOCK": 1,
}


class DegradeAlertTracker:
    """Sliding-window counter for pipeline events that silently serve mock output."""

    def __init__(self, window_seconds: int, thresholds: dict[str, int]) -> None:
        self._window_seconds = window_seconds
        self._thresholds = thresholds
        self._buckets: dict[str, deque[float]] = {}
        self._totals: dict[str, int] = {}
        self._lock = Lock()

    def record(self, action: str, metadata: Optional[dict] = None) -> None:
        now = time.monotonic()
        with self._lock:
            self._totals[action] = self._totals.get(action, 0) + 1
            if action not in self._thresholds:
                return
            limit = self._thresholds[action]
            bucket = self._buckets.get(action)
            if bucket is None:
                bucket = deque()
                self._buckets[action] = bucket
            cutoff = now - self._window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            bucket.append(now)
            # Alert at threshold and at every multiple of threshold
            if len(bucket) >= limit and len(bucket) % limit == 0:
                logger.warning(
                    "ALERT pipeline_event=%s count=%s window_seconds=%s metadata=%s",
                    action,
                    len(bucket),
                    self._window_seconds,
                    metadata or {},
                )

    def total(self, action: str) -> int:
        with self._lock:
            return self._totals.get(action, 0)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._totals.clear()


alert_tracker = DegradeAlertTracker(DEFAULT_WINDOW_SECONDS, DEFAULT_THRESHOLDS)
