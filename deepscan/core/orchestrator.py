import asyncio
import dataclasses
import logging
from typing import Optional, Tuple

from ..config import Config
from ..data.schemas import ScanItem, ScanOptions, ScanResult, ScanSettings, ScanStatus
from ..errors import ProviderError, ScanRefused
from .health import AggregateHealthModel
from .notifications import NotificationSink
from .progress import ProgressSimulator
from .provider import AnalysisProvider
from .queue import ScanQueue

logger = logging.getLogger(__name__)

_UNSET = object()


def correlation_query(result: ScanResult) -> str:
    """First reported vulnerability, or a generic query on the file name."""
    if result.vulnerabilities:
        return result.vulnerabilities[0]
    return f"{result.file_name} vulnerabilities"


class ScanOrchestrator:
    """
    Runs one scan at a time: queue transitions, simulated progress,
    provider call, vulnerability correlation and stats update.

    The single-scan slot is claimed synchronously, before the first
    suspension point, so it holds regardless of how callers schedule
    their requests.
    """

    def __init__(self, queue: ScanQueue, provider: AnalysisProvider, health: AggregateHealthModel,
                 notifier: NotificationSink, settings: ScanSettings = None,
                 preprocess_delay: float = None, tick_interval: float = None,
                 analysis_timeout=_UNSET):
        self.queue = queue
        self.provider = provider
        self.health = health
        self.notifier = notifier
        self.settings = settings or ScanSettings()
        self.preprocess_delay = Config.PREPROCESS_DELAY if preprocess_delay is None else preprocess_delay
        self.tick_interval = Config.TICK_INTERVAL if tick_interval is None else tick_interval
        self.analysis_timeout = Config.ANALYSIS_TIMEOUT if analysis_timeout is _UNSET else analysis_timeout

        self._active_id: Optional[str] = None
        # held so the background task is not garbage collected mid-scan
        self._task: Optional[asyncio.Task] = None

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    # ── public API ──────────────────────────────────────────────

    def launch(self, item_id: str) -> asyncio.Task:
        """
        Claim the slot and run the scan as a background task.
        Raises ScanRefused if the scan cannot start.
        """
        item, options, initial_eta = self._claim(item_id)
        self._task = asyncio.get_running_loop().create_task(self._run(item, options, initial_eta))
        return self._task

    async def start_scan(self, item_id: str) -> bool:
        """Run one scan to its terminal state. Returns False if refused."""
        try:
            item, options, initial_eta = self._claim(item_id)
        except ScanRefused as e:
            logger.warning(str(e))
            return False
        await self._run(item, options, initial_eta)
        return True

    # ── internals ───────────────────────────────────────────────

    def _claim(self, item_id: str) -> Tuple[ScanItem, ScanOptions, float]:
        item = self.queue.find(item_id)
        if item is None:
            raise ScanRefused(item_id, "no such item")
        if self._active_id is not None:
            raise ScanRefused(item_id, f"scan already in progress ({self._active_id})")
        if item.status != ScanStatus.IDLE:
            raise ScanRefused(item_id, f"item is {item.status.value}")

        # Options are read now; later edits only affect the next scan
        options = dataclasses.replace(self.settings.options)
        initial_eta = Config.initial_eta(options.scan_depth, item.file.size)

        self._active_id = item_id
        self.queue.update_item(item_id, status=ScanStatus.SCANNING, progress=0.0, eta=initial_eta, result=None)
        logger.info(f"Scan started: {item.file.name} ({item_id}) depth={options.scan_depth} eta={initial_eta}s")
        return item, options, initial_eta

    def _on_tick(self, item_id: str):
        def _update(progress: float, eta: int):
            self.queue.update_item(item_id, progress=progress, eta=eta)
        return _update

    async def _run(self, item: ScanItem, options: ScanOptions, initial_eta: float) -> Optional[ScanResult]:
        simulator = ProgressSimulator(self._on_tick(item.id), interval=self.tick_interval)
        try:
            try:
                async with simulator.running(initial_eta):
                    result = await self._analyze(item, options)
            except asyncio.CancelledError:
                self._fail(item, "cancelled")
                raise
            except Exception as e:
                logger.exception(f"Scan failed for {item.file.name} ({item.id})")
                self._fail(item, str(e))
                return None

            self.queue.update_item(item.id, status=ScanStatus.COMPLETED, progress=100.0, eta=0, result=result)
            logger.info(f"Scan completed: {item.file.name} -> {result.threat_level.value}")
            self.health.record(result)

            if self.settings.notifications_enabled:
                self._notify(f'Scan report for "{item.file.name}" sent to admin.')
            return result
        finally:
            self._active_id = None

    def _fail(self, item: ScanItem, reason: str):
        self.queue.update_item(item.id, status=ScanStatus.ERROR, progress=0.0, eta=0, result=None)
        logger.info(f"Scan errored: {item.file.name} ({reason})")
        self._notify(f'Scan failed for "{item.file.name}".')

    def _notify(self, message: str):
        # The scan has already reached its terminal state
        try:
            self.notifier.notify(message)
        except Exception:
            logger.exception(f"Notification failed: {message}")

    async def _analyze(self, item: ScanItem, options: ScanOptions) -> ScanResult:
        # Provider warm-up
        await asyncio.sleep(self.preprocess_delay)
        self.queue.update_item(item.id, status=ScanStatus.ANALYZING)

        call = self.provider.analyze(item.file, options)
        if self.analysis_timeout:
            try:
                result = await asyncio.wait_for(call, timeout=self.analysis_timeout)
            except asyncio.TimeoutError as e:
                raise ProviderError(f"Analysis timed out after {self.analysis_timeout}s") from e
        else:
            result = await call

        if result.is_threat:
            result = await self._correlate(result)
        return result

    async def _correlate(self, result: ScanResult) -> ScanResult:
        query = correlation_query(result)
        try:
            links = await self.provider.lookup_references(query)
        except Exception as e:
            logger.warning(f"Vulnerability correlation failed for {query!r}: {e}")
            return result

        if not links:
            return result
        return dataclasses.replace(result, cve_matches=list(links))
