from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user, require_admin
from ..deps import get_db
from ..schemas import SystemNotificationRequest
from ..services import notifications

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def notifications_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "notifications"}


@router.get("/notifications")
def list_notifications(current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"notifications": notifications.list_notifications(db, current_user["id"])}


@router.get("/notifications/count")
def count_notifications(current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"count": notifications.count_notifications(db, current_user["id"])}


@router.post("/notifications/admin")
def create_system_notification(payload: SystemNotificationRequest, admin: dict[str, Any] = Depends(require_admin), db=Depends(get_db)) -> dict[str, Any]:
    created = notifications.create_system_notification(db, admin["id"], payload.target_ids, payload.content)
    return {"status": "sent", "count": created}
