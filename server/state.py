from pydantic import BaseModel, Field
from typing import Literal

from deepscan.data.schemas import ScanOptions


class ScanOptionsModel(BaseModel):
    scan_depth: Literal['quick', 'balanced', 'deep'] = 'balanced'
    enable_heuristics: bool = True
    enable_signatures: bool = True
    sensitivity_threshold: float = Field(default=50, ge=0, le=100)

    @classmethod
    def from_options(cls, options: ScanOptions) -> "ScanOptionsModel":
        return cls(**options.to_dict())

    def to_options(self) -> ScanOptions:
        return ScanOptions(**self.model_dump())


class NotificationSettings(BaseModel):
    enabled: bool
