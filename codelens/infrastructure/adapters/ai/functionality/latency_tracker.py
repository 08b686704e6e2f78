# codelens/infrastructure/adapters/ai/functionality/latency_tracker.py

"""Analysis latency: sliding windows, overall and per label"""

import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence
import numpy as np
import structlog

logger = structlog.get_logger()

PERCENTILES = (50, 90, 95, 99)


class LatencyTracker:
    """
    Sliding-window latency with percentiles.

    Every sample lands in the overall window; samples recorded with a
    label (e.g. the analysis type) also land in that label's own window.
    """

    def __init__(self, window_size: int = 100, enabled: bool = True):
        """
        Args:
            window_size: Samples kept per window
            enabled: Enable/disable tracking
        """
        self.window_size = window_size
        self.enabled = enabled
        self._overall: Deque[float] = deque(maxlen=window_size)
        self._by_label: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

        logger.debug("latency_tracker_initialized", window_size=window_size)

    def record(self, latency_ms: float, label: Optional[str] = None) -> None:
        """Record one successful call"""
        if not self.enabled:
            return

        with self._lock:
            self._overall.append(latency_ms)
            if label is not None:
                window = self._by_label.setdefault(label, deque(maxlen=self.window_size))
                window.append(latency_ms)

    def _samples(self, label: Optional[str]) -> np.ndarray:
        with self._lock:
            if label is None:
                window = self._overall
            else:
                window = self._by_label.get(label, ())
            return np.fromiter(window, dtype=float)

    def labels(self) -> List[str]:
        """Labels seen so far"""
        with self._lock:
            return sorted(self._by_label)

    def get_average(self, label: Optional[str] = None) -> float:
        samples = self._samples(label)
        return float(samples.mean()) if samples.size else 0.0

    def get_percentile(self, percentile: float, label: Optional[str] = None) -> float:
        samples = self._samples(label)
        return float(np.percentile(samples, percentile)) if samples.size else 0.0

    def get_stats(self, label: Optional[str] = None,
                  percentiles: Sequence[int] = PERCENTILES) -> Dict[str, float]:
        """count / avg / min / max / pNN for one window (overall when label is None)"""
        samples = self._samples(label)
        if not samples.size:
            return {
                'count': 0,
                'avg': 0.0,
                'min': 0.0,
                'max': 0.0,
                **{f'p{p}': 0.0 for p in percentiles}
            }

        values = np.percentile(samples, list(percentiles))
        return {
            'count': int(samples.size),
            'avg': round(float(samples.mean()), 2),
            'min': round(float(samples.min()), 2),
            'max': round(float(samples.max()), 2),
            **{f'p{p}': round(float(v), 2) for p, v in zip(percentiles, values)}
        }

    def get_stats_by_label(self) -> Dict[str, Dict[str, float]]:
        return {label: self.get_stats(label) for label in self.labels()}

    def reset(self) -> None:
        """Clear all windows"""
        with self._lock:
            self._overall.clear()
            self._by_label.clear()
        logger.debug("latency_tracker_reset")
