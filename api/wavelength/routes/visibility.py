from typing import Any

from fastapi import APIRouter, Depends, Query

from ..auth.deps import get_current_user, require_admin
from ..deps import get_db
from ..errors import ValidationError
from ..schemas import AdminSetVisibilityRequest, TargetRequest
from ..services import visibility

router = APIRouter()
scaffold_router = APIRouter()


def _target_id(payload: TargetRequest) -> str:
    target_id = payload.target_id.strip()
    if not target_id:
        raise ValidationError("Target user id can not be empty.")
    return target_id


@scaffold_router.get("/health")
def visibility_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "visibility"}


@router.post("/visibility/block")
def block_user(payload: TargetRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    edge = visibility.block_user(db, current_user["id"], _target_id(payload))
    return {"status": "blocked", "visibility": edge}


@router.post("/visibility/dismiss")
def dismiss_user(payload: TargetRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    edge = visibility.dismiss_user(db, current_user["id"], _target_id(payload))
    return {"status": "dismissed", "visibility": edge}


@router.post("/visibility/unblock")
def unblock_user(payload: TargetRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    edge = visibility.unblock_user(db, current_user["id"], _target_id(payload))
    return {"status": "unblocked", "visibility": edge}


@router.get("/visibility/blocks")
def list_blocks(current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"blocks": visibility.list_blocked(db, current_user["id"])}


@router.post("/visibility/admin/set")
def admin_set_visibility(
    payload: AdminSetVisibilityRequest,
    admin: dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
) -> dict[str, Any]:
    if not payload.source.strip():
        raise ValidationError("Source user id can not be empty.")
    if not payload.target.strip():
        raise ValidationError("Target user id can not be empty.")
    if not payload.state.strip():
        raise ValidationError("Visibility can not be empty.")
    edge = visibility.set_visibility(db, payload.source.strip(), payload.target.strip(), payload.state)
    return {"status": "ok", "visibility": edge}


@router.delete("/visibility/admin/delete")
def admin_delete_visibility(
    visibility_id: int = Query(..., alias="visibilityId"),
    admin: dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
) -> dict[str, Any]:
    if visibility_id <= 0:
        raise ValidationError("Visibility id can not be empty.")
    visibility.delete_visibility(db, visibility_id)
    return {"status": "deleted", "visibilityId": visibility_id}
