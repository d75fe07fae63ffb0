from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from typing import List

from ..dependencies import get_engine
from ..state import ScanOptionsModel
from deepscan.core.engine import ScanEngine
from deepscan.core.inspection import preview
from deepscan.data.schemas import FileRef, ScanStatus
from deepscan.errors import ScanRefused

router = APIRouter(prefix="/scan", tags=["scan"])


def _get_item_or_404(engine: ScanEngine, item_id: str):
    item = engine.queue.find(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.post("/files", status_code=201)
async def submit_files(files: List[UploadFile] = File(...), engine: ScanEngine = Depends(get_engine)):
    """Queue uploaded files. Scans are started separately."""
    refs = []
    for upload in files:
        data = await upload.read()
        refs.append(FileRef.from_bytes(upload.filename or "unnamed", data, upload.content_type))
    items = engine.queue.enqueue(refs)
    return {"items": [i.to_dict() for i in items]}


@router.get("/queue")
def get_queue(engine: ScanEngine = Depends(get_engine)):
    queue = engine.queue
    return {
        "revision": queue.revision,
        "active_id": engine.orchestrator.active_id,
        "counts": {s.value: queue.count_by_status(s) for s in ScanStatus},
        "items": [i.to_dict() for i in queue.items()],
    }


@router.get("/queue/{item_id}")
def get_item(item_id: str, engine: ScanEngine = Depends(get_engine)):
    return _get_item_or_404(engine, item_id).to_dict()


@router.get("/queue/{item_id}/preview")
def get_item_preview(item_id: str, engine: ScanEngine = Depends(get_engine)):
    """SHA-256 and a hex/ascii dump of the file header."""
    item = _get_item_or_404(engine, item_id)
    return preview(item.file)


@router.post("/queue/{item_id}/start", status_code=202)
async def start_scan(item_id: str, engine: ScanEngine = Depends(get_engine)):
    """Start scanning one queued item in the background."""
    _get_item_or_404(engine, item_id)
    try:
        engine.orchestrator.launch(item_id)
    except ScanRefused as e:
        raise HTTPException(status_code=409, detail=e.reason)

    return {"message": "Scan started", "item": engine.queue.find(item_id).to_dict()}


@router.get("/options", response_model=ScanOptionsModel)
def get_options(engine: ScanEngine = Depends(get_engine)):
    return ScanOptionsModel.from_options(engine.settings.options)


@router.put("/options", response_model=ScanOptionsModel)
def update_options(req: ScanOptionsModel, engine: ScanEngine = Depends(get_engine)):
    """Applies to the next scan started, not the one in flight."""
    engine.settings.options = req.to_options()
    return req
