from ..data.schemas import ScanSettings
from .health import AggregateHealthModel
from .notifications import ToastBoard
from .orchestrator import ScanOrchestrator
from .provider import AnalysisProvider, OllamaProvider
from .queue import ScanQueue


class ScanEngine:
    """Owns all engine state and wires the orchestrator to it."""

    def __init__(self, provider: AnalysisProvider = None, settings: ScanSettings = None, **orchestrator_kwargs):
        self.queue = ScanQueue()
        self.health = AggregateHealthModel()
        self.notifications = ToastBoard()
        self.settings = settings or ScanSettings()
        self.provider = provider or OllamaProvider()
        self.orchestrator = ScanOrchestrator(
            queue=self.queue,
            provider=self.provider,
            health=self.health,
            notifier=self.notifications,
            settings=self.settings,
            **orchestrator_kwargs,
        )

    @property
    def stats(self):
        return self.health.stats
