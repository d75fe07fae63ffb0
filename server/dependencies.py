import logging
from functools import lru_cache

from deepscan.core.engine import ScanEngine

logger = logging.getLogger(__name__)


@lru_cache()
def get_engine() -> ScanEngine:
    """Singleton for the scan engine (queue, stats, settings, orchestrator)."""
    logger.info("Initializing ScanEngine singleton...")
    return ScanEngine()
