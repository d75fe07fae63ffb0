from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_engine
from ..state import NotificationSettings
from deepscan.core.engine import ScanEngine

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(engine: ScanEngine = Depends(get_engine)):
    return {
        "enabled": engine.settings.notifications_enabled,
        "items": [n.to_dict() for n in engine.notifications.active()],
    }


@router.put("/settings", response_model=NotificationSettings)
def update_settings(req: NotificationSettings, engine: ScanEngine = Depends(get_engine)):
    engine.settings.notifications_enabled = req.enabled
    return req


@router.delete("/{notification_id}")
def dismiss(notification_id: str, engine: ScanEngine = Depends(get_engine)):
    if not engine.notifications.dismiss(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"dismissed": notification_id}
