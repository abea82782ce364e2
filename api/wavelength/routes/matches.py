from typing import Any

from fastapi import APIRouter, Depends, Query

from ..auth.deps import get_current_user
from ..config import MATCHES_PAGE_SIZE
from ..deps import get_db
from ..schemas import DiscoverRequest
from ..services import matching

router = APIRouter()
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def matches_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "matches"}


@router.post("/matches/discover")
def discover(payload: DiscoverRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"user": matching.discover_candidate(db, current_user["id"], payload.exclude_ids)}


@router.get("/matches")
def list_matches(
    page: int = Query(1),
    page_size: int = Query(MATCHES_PAGE_SIZE, alias="pageSize"),
    current_user: dict[str, Any] = Depends(get_current_user),
    db=Depends(get_db),
) -> dict[str, Any]:
    return {"page": page, "pageSize": page_size, "matches": matching.list_matches(db, current_user["id"], page_size, page)}


@router.get("/matches/count")
def matches_count(
    page_size: int = Query(MATCHES_PAGE_SIZE, alias="pageSize"),
    current_user: dict[str, Any] = Depends(get_current_user),
    db=Depends(get_db),
) -> dict[str, Any]:
    return {"pages": matching.matches_count(db, current_user["id"], page_size), "pageSize": page_size}
