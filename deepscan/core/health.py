import logging
import threading
from typing import List

from ..data.schemas import AggregateStats, ScanResult

logger = logging.getLogger(__name__)


def compute_health(scanned: int, threats: int) -> float:
    """100 minus the threat percentage, floored at 0, one decimal."""
    if scanned <= 0:
        return 100.0
    ratio = threats / scanned
    return round(max(0.0, 100 - ratio * 100), 1)


class AggregateHealthModel:
    """Running totals over completed scans. Session only, never reset."""

    def __init__(self):
        self._lock = threading.Lock()
        self._stats = AggregateStats()
        self._history: List[ScanResult] = []

    @property
    def stats(self) -> AggregateStats:
        return self._stats

    def history(self) -> List[ScanResult]:
        """Recorded results, newest first."""
        return list(self._history)

    def record(self, result: ScanResult) -> AggregateStats:
        with self._lock:
            scanned = self._stats.scanned + 1
            threats = self._stats.threats + (1 if result.is_threat else 0)
            self._stats = AggregateStats(
                scanned=scanned,
                threats=threats,
                health=compute_health(scanned, threats),
            )
            self._history.insert(0, result)
            stats = self._stats

        logger.info(f"Stats updated: scanned={stats.scanned} threats={stats.threats} health={stats.health}")
        return stats
