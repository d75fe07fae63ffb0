from fastapi import APIRouter, Depends

from ..dependencies import get_engine
from deepscan.core.engine import ScanEngine

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
def get_stats(engine: ScanEngine = Depends(get_engine)):
    return engine.stats.to_dict()


@router.get("/history")
def get_history(engine: ScanEngine = Depends(get_engine)):
    """Completed results for this session, newest first."""
    return {"results": [r.to_dict() for r in engine.health.history()]}
