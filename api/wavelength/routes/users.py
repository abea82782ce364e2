from typing import Any

from fastapi import APIRouter, Depends

from .. import repo
from ..auth.deps import get_current_user
from ..deps import get_db
from ..errors import NotFoundError
from ..schemas import UpdateTagsRequest

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def users_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "users"}


@router.get("/users/me")
def get_me(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {**repo.public_profile(current_user), "email": current_user.get("email"), "roles": current_user.get("roles") or []}


@router.put("/users/me/tags")
def update_my_tags(payload: UpdateTagsRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    user = repo.update_user_tags(db, current_user["id"], payload.tags)
    return {"tags": user["tags"]}


@router.get("/users/{user_id}")
def get_user(user_id: str, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    user = repo.get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found.")
    return repo.public_profile(user)
