"""
Directed visibility edges between users.

Every mutation here touches exactly one ordered ``(source, target)`` row; the
reverse edge is never read or written. The store enforces one row per pair,
so a racing insert surfaces as ``IntegrityError`` and the operation is
replayed once against the row the other writer created.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .. import repo
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import UserVisibility, touch

logger = logging.getLogger(__name__)


class VisibilityState(str, Enum):
    VISIBLE = "visible"
    DISMISSED = "dismissed"
    BLOCKED = "blocked"


def parse_visibility_state(raw: Any) -> VisibilityState:
    value = str(raw or "").strip().lower()
    for state in VisibilityState:
        if state.value == value:
            return state
    allowed = ", ".join(s.value for s in VisibilityState)
    raise ValidationError(f"Unknown visibility state '{raw}'. Expected one of: {allowed}.", code="invalid_visibility_state")


def edge_dict(edge: UserVisibility) -> dict[str, Any]:
    return {
        "id": edge.id,
        "sourceUserId": edge.source_user_id,
        "targetUserId": edge.target_user_id,
        "visibility": edge.visibility,
        "createdAt": edge.created_at,
        "updatedAt": edge.updated_at,
    }


def get_edge(db, source_id: str, target_id: str, *, for_update: bool = False) -> UserVisibility | None:
    stmt = select(UserVisibility).where(
        UserVisibility.source_user_id == str(source_id),
        UserVisibility.target_user_id == str(target_id),
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalars().first()


def write_edge(db, source_id: str, target_id: str, state: VisibilityState, existing: UserVisibility | None = None) -> UserVisibility:
    """Upsert the pair's row inside the caller's transaction (flushes, does not commit)."""
    edge = existing if existing is not None else get_edge(db, source_id, target_id, for_update=True)
    if edge is None:
        edge = touch(UserVisibility(source_user_id=str(source_id), target_user_id=str(target_id)), created=True)
        db.add(edge)
    else:
        touch(edge)
    edge.visibility = state.value
    db.flush()
    return edge


def _replay_on_conflict(db, operation: Callable[[], UserVisibility]) -> UserVisibility:
    try:
        return operation()
    except IntegrityError:
        db.rollback()
        logger.info("[visibility] concurrent insert on pair, replaying against stored row")
        return operation()


def _require_distinct(source_id: str, target_id: str) -> None:
    if str(source_id) == str(target_id):
        raise ValidationError("Source and target user must be different users.", code="self_visibility")


def set_visibility(db, source_id: str, target_id: str, raw_state: Any) -> dict[str, Any]:
    state = parse_visibility_state(raw_state)
    _require_distinct(source_id, target_id)
    missing = {str(source_id), str(target_id)} - repo.existing_user_ids(db, [source_id, target_id])
    if missing:
        raise NotFoundError("Source or target user was not found.")

    def _apply() -> UserVisibility:
        edge = write_edge(db, source_id, target_id, state)
        db.commit()
        return edge

    edge = _replay_on_conflict(db, _apply)
    logger.info("[visibility] admin set %s -> %s = %s", source_id, target_id, state.value)
    return edge_dict(edge)


def delete_visibility(db, visibility_id: int) -> None:
    edge = db.get(UserVisibility, visibility_id)
    if edge is None:
        raise NotFoundError("No user visibility found.")
    db.delete(edge)
    db.commit()
    logger.info("[visibility] admin deleted edge id=%s", visibility_id)


def block_user(db, source_id: str, target_id: str) -> dict[str, Any]:
    _require_distinct(source_id, target_id)
    if not repo.user_exists(db, target_id):
        raise NotFoundError("Target user was not found.")

    def _apply() -> UserVisibility:
        edge = get_edge(db, source_id, target_id, for_update=True)
        if edge is not None and edge.visibility == VisibilityState.BLOCKED.value:
            raise ConflictError("The target user is already blocked.", code="already_blocked")
        edge = write_edge(db, source_id, target_id, VisibilityState.BLOCKED, existing=edge)
        db.commit()
        return edge

    edge = _replay_on_conflict(db, _apply)
    logger.info("[visibility] %s blocked %s", source_id, target_id)
    return edge_dict(edge)


def dismiss_user(db, source_id: str, target_id: str) -> dict[str, Any]:
    _require_distinct(source_id, target_id)
    if not repo.user_exists(db, target_id):
        raise NotFoundError("Target user was not found.")

    def _apply() -> UserVisibility:
        edge = get_edge(db, source_id, target_id, for_update=True)
        if edge is not None and edge.visibility in {VisibilityState.DISMISSED.value, VisibilityState.BLOCKED.value}:
            raise ConflictError(f"The target user is already {edge.visibility}.", code=f"already_{edge.visibility}")
        edge = write_edge(db, source_id, target_id, VisibilityState.DISMISSED, existing=edge)
        db.commit()
        return edge

    edge = _replay_on_conflict(db, _apply)
    logger.info("[visibility] %s dismissed %s", source_id, target_id)
    return edge_dict(edge)


def unblock_user(db, source_id: str, target_id: str) -> dict[str, Any]:
    _require_distinct(source_id, target_id)
    edge = get_edge(db, source_id, target_id, for_update=True)
    if edge is None:
        raise ConflictError("Target user has no set visibility.", code="no_visibility")
    if edge.visibility != VisibilityState.BLOCKED.value:
        raise ConflictError("Target user is not blocked.", code="not_blocked")
    touch(edge)
    edge.visibility = VisibilityState.VISIBLE.value
    db.commit()
    logger.info("[visibility] %s unblocked %s", source_id, target_id)
    return edge_dict(edge)


def list_blocked(db, source_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        select(UserVisibility)
        .where(
            UserVisibility.source_user_id == str(source_id),
            UserVisibility.visibility == VisibilityState.BLOCKED.value,
        )
        .order_by(UserVisibility.updated_at.desc(), UserVisibility.id.desc())
    ).scalars().all()
    return [edge_dict(r) for r in rows]
