class DeepScanError(Exception):
    """Base class for engine errors."""


class ProviderError(DeepScanError):
    """The analysis provider could not produce a verdict."""


class CorrelationError(DeepScanError):
    """The vulnerability reference lookup failed."""


class ScanRefused(DeepScanError):
    """A scan could not be started for the given item."""

    def __init__(self, item_id: str, reason: str):
        super().__init__(f"Scan refused for {item_id}: {reason}")
        self.item_id = item_id
        self.reason = reason
