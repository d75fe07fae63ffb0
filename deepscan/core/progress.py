import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import Callable, Optional, Tuple

from ..config import Config

logger = logging.getLogger(__name__)

TickCallback = Callable[[float, int], None]


class ProgressSimulator:
    """
    Synthetic progress for the one active scan.

    Progress approaches the ceiling asymptotically and the ETA is floored,
    so the simulator can never report completion on its own. Terminal
    values are written by the orchestrator, not here.
    """

    def __init__(self, on_tick: TickCallback, interval: float = None,
                 ceiling: float = Config.PROGRESS_CEILING, rate: float = Config.PROGRESS_RATE,
                 eta_step: float = Config.ETA_STEP, eta_floor: float = Config.ETA_FLOOR):
        self.on_tick = on_tick
        self.interval = Config.TICK_INTERVAL if interval is None else interval
        self.ceiling = ceiling
        self.rate = rate
        self.eta_step = eta_step
        self.eta_floor = eta_floor

        self.progress = 0.0
        self.eta = 0.0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def step(self) -> Tuple[float, int]:
        """Advance one tick. Returns (progress, published eta)."""
        self.progress += (self.ceiling - self.progress) * self.rate
        self.eta = max(self.eta - self.eta_step, self.eta_floor)
        return self.progress, math.ceil(self.eta)

    def start(self, initial_eta: float):
        if self.is_running:
            raise RuntimeError("Progress simulator already running")
        self.progress = 0.0
        self.eta = float(initial_eta)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @asynccontextmanager
    async def running(self, initial_eta: float):
        """Tick for the duration of the block; always stopped on exit."""
        self.start(initial_eta)
        try:
            yield self
        finally:
            await self.stop()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            progress, eta = self.step()
            try:
                self.on_tick(progress, eta)
            except Exception:
                # A bad listener must not kill the ticker mid-scan
                logger.exception("Progress tick callback failed")
