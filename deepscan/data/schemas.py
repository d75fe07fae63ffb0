from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional, Dict, Any, Callable
import os


class ScanStatus(str, Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    ANALYZING = 'analyzing'
    COMPLETED = 'completed'
    ERROR = 'error'

    @property
    def is_active(self) -> bool:
        return self in (ScanStatus.SCANNING, ScanStatus.ANALYZING)


class ThreatLevel(str, Enum):
    SAFE = 'safe'
    SUSPICIOUS = 'suspicious'
    MALICIOUS = 'malicious'
    UNKNOWN = 'unknown'

    @classmethod
    def parse(cls, value: Any) -> "ThreatLevel":
        """Case-insensitive lookup; anything unrecognised is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


SCAN_DEPTHS = ('quick', 'balanced', 'deep')


class FileRef:
    """
    Handle to a submitted file: name, byte size, content type and a
    raw bytes accessor. Content comes either from memory (uploads) or
    from a path on disk, read lazily.
    """

    def __init__(self, name: str, size: int, content_type: str = "application/octet-stream",
                 reader: Optional[Callable[[], bytes]] = None):
        self.name = name
        self.size = size
        self.content_type = content_type or "application/octet-stream"
        self._reader = reader

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: str = "application/octet-stream") -> "FileRef":
        return cls(name, len(data), content_type, reader=lambda: data)

    @classmethod
    def from_path(cls, path: str, content_type: str = "application/octet-stream") -> "FileRef":
        def _read() -> bytes:
            with open(path, 'rb') as f:
                return f.read()
        return cls(os.path.basename(path), os.path.getsize(path), content_type, reader=_read)

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith('image/')

    def read(self) -> bytes:
        if self._reader is None:
            return b""
        return self._reader()

    def to_dict(self):
        return {'name': self.name, 'size': self.size, 'content_type': self.content_type}

    def __repr__(self):
        return f"FileRef(name={self.name!r}, size={self.size}, content_type={self.content_type!r})"


@dataclass
class ScanResult:
    """Terminal verdict for one file."""
    file_name: str
    threat_level: ThreatLevel
    summary: str
    vulnerabilities: List[str] = field(default_factory=list)
    confidence_score: float = 0.0  # 0-100
    technical_details: str = ""
    cve_matches: Optional[List[str]] = None  # only for non-safe verdicts with hits

    def __post_init__(self):
        self.threat_level = ThreatLevel.parse(self.threat_level)
        self.confidence_score = min(max(float(self.confidence_score), 0.0), 100.0)
        if self.threat_level == ThreatLevel.SAFE or not self.cve_matches:
            self.cve_matches = None

    @property
    def is_threat(self) -> bool:
        return self.threat_level != ThreatLevel.SAFE

    @classmethod
    def from_dict(cls, data: Dict[str, Any], file_name: str) -> "ScanResult":
        """Build from a provider JSON payload. The file name always comes from the submission."""
        vulns = data.get('vulnerabilities') or []
        if isinstance(vulns, str):
            vulns = [vulns]
        cves = data.get('cveMatches', data.get('cve_matches')) or None
        return cls(
            file_name=file_name,
            threat_level=data.get('threatLevel', data.get('threat_level', ThreatLevel.UNKNOWN)),
            summary=str(data.get('summary') or ""),
            vulnerabilities=[str(v) for v in vulns],
            confidence_score=data.get('confidenceScore', data.get('confidence_score', 0)) or 0,
            technical_details=str(data.get('technicalDetails') or data.get('technical_details') or ""),
            cve_matches=[str(c) for c in cves] if cves else None,
        )

    def to_dict(self):
        d = asdict(self)
        d['threat_level'] = self.threat_level.value
        return d


@dataclass
class ScanOptions:
    """Configuration used for the next scan that starts."""
    scan_depth: str = 'balanced'
    enable_heuristics: bool = True
    enable_signatures: bool = True
    sensitivity_threshold: float = 50

    def __post_init__(self):
        if self.scan_depth not in SCAN_DEPTHS:
            raise ValueError(f"scan_depth must be one of {SCAN_DEPTHS}, got {self.scan_depth!r}")
        if not 0 <= self.sensitivity_threshold <= 100:
            raise ValueError(f"sensitivity_threshold must be within 0-100, got {self.sensitivity_threshold}")

    def to_dict(self):
        return asdict(self)


@dataclass
class ScanSettings:
    """Process-wide mutable settings, read by the orchestrator when a scan starts."""
    options: ScanOptions = field(default_factory=ScanOptions)
    notifications_enabled: bool = True


@dataclass(frozen=True)
class ScanItem:
    """One submitted file under management. Replaced, never mutated."""
    id: str
    file: FileRef
    status: ScanStatus = ScanStatus.IDLE
    progress: float = 0.0  # 0-100
    eta: Optional[float] = None  # seconds remaining, only while active
    result: Optional[ScanResult] = None

    def to_dict(self):
        return {
            'id': self.id,
            'file': self.file.to_dict(),
            'status': self.status.value,
            'progress': self.progress,
            'eta': self.eta,
            'result': self.result.to_dict() if self.result else None,
        }


@dataclass(frozen=True)
class AggregateStats:
    scanned: int = 0
    threats: int = 0
    health: float = 100.0

    @property
    def detection_rate(self) -> float:
        if self.scanned == 0:
            return 0.0
        return round(self.threats / self.scanned * 100, 1)

    def to_dict(self):
        d = asdict(self)
        d['detection_rate'] = self.detection_rate
        return d
