from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, exists, func, select
from sqlalchemy.exc import IntegrityError

from .. import repo
from ..config import MATCHES_MAX_PAGE_SIZE
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import QuizScore, UserAccount, UserVisibility, touch
from .quiz import find_quiz, score_submission
from .visibility import VisibilityState, get_edge, write_edge

logger = logging.getLogger(__name__)


def _score_exists(db, player_id: str, owner_id: str) -> bool:
    return db.execute(
        select(QuizScore.id).where(QuizScore.player_id == player_id, QuizScore.quiz_owner_id == owner_id)
    ).first() is not None


def submit_quiz(db, player_id: str, owner_id: str, answers: list[int]) -> dict[str, Any]:
    player_id = str(player_id)
    owner_id = str(owner_id)
    if player_id == owner_id:
        raise ValidationError("You cannot submit your own quiz.", code="self_submission")
    if not repo.user_exists(db, owner_id):
        raise NotFoundError("User not found.")

    quiz = find_quiz(db, owner_id)
    if quiz is None:
        raise NotFoundError("The user's quiz has not been set up yet.", code="quiz_not_set_up")

    if _score_exists(db, player_id, owner_id):
        raise ConflictError("You have already submitted this quiz.", code="already_submitted")

    result = score_submission(quiz, answers)
    outcome = VisibilityState.VISIBLE if result.passed else VisibilityState.DISMISSED

    # Score row and visibility edge commit together or not at all.
    def _record() -> None:
        db.add(touch(QuizScore(player_id=player_id, quiz_owner_id=owner_id, match_percent=result.match_percent), created=True))
        db.flush()
        edge = get_edge(db, player_id, owner_id, for_update=True)
        if edge is not None and edge.visibility == VisibilityState.BLOCKED.value:
            logger.info("[quiz] player=%s owner=%s already blocked, edge kept", player_id, owner_id)
        else:
            write_edge(db, player_id, owner_id, outcome, existing=edge)
        db.commit()

    def _rollback_or_conflict() -> None:
        db.rollback()
        if _score_exists(db, player_id, owner_id):
            raise ConflictError("You have already submitted this quiz.", code="already_submitted")

    try:
        _record()
    except IntegrityError:
        _rollback_or_conflict()
        # The pair's edge was inserted concurrently; replay against the stored row.
        logger.info("[quiz] player=%s owner=%s edge inserted concurrently, replaying", player_id, owner_id)
        try:
            _record()
        except IntegrityError:
            _rollback_or_conflict()
            raise

    logger.info(
        "[quiz] player=%s owner=%s match_percent=%s passed=%s",
        player_id,
        owner_id,
        result.match_percent,
        result.passed,
    )
    return {"matchPercent": result.match_percent, "passed": result.passed}


def get_match_percent(db, viewer_id: str, owner_id: str) -> int:
    if str(viewer_id) == str(owner_id):
        raise ValidationError("You cannot get a match percentage for your own quiz.", code="self_lookup")
    value = db.execute(
        select(QuizScore.match_percent).where(
            QuizScore.player_id == str(viewer_id),
            QuizScore.quiz_owner_id == str(owner_id),
        )
    ).scalar()
    if value is None:
        raise NotFoundError("No quiz score found for the specified users.")
    return int(value)


def discover_candidate(db, viewer_id: str, exclude_ids: list[str] | None = None) -> dict[str, Any]:
    viewer_id = str(viewer_id)
    excluded = {str(x) for x in (exclude_ids or []) if str(x or "").strip()}
    excluded.add(viewer_id)

    already_evaluated = exists().where(
        and_(
            UserVisibility.source_user_id == viewer_id,
            UserVisibility.target_user_id == UserAccount.id,
        )
    )
    # Users who have blocked the viewer are left out of the pool as well.
    blocked_viewer = exists().where(
        and_(
            UserVisibility.source_user_id == UserAccount.id,
            UserVisibility.target_user_id == viewer_id,
            UserVisibility.visibility == VisibilityState.BLOCKED.value,
        )
    )
    # Sampling happens in the store; only the picked row is loaded.
    user_id = db.execute(
        select(UserAccount.id)
        .where(UserAccount.id.notin_(excluded), ~already_evaluated, ~blocked_viewer)
        .order_by(func.random())
        .limit(1)
    ).scalar()
    if user_id is None:
        raise NotFoundError("No users found.", code="no_candidates")

    user = repo.get_user(db, user_id)
    return repo.public_profile(user)


def _validate_paging(page_size: int, page: int = 1) -> None:
    if page_size < 1 or page_size > MATCHES_MAX_PAGE_SIZE:
        raise ValidationError(f"pageSize must be between 1 and {MATCHES_MAX_PAGE_SIZE}.")
    if page < 1:
        raise ValidationError("page must be 1 or greater.")


def list_matches(db, viewer_id: str, page_size: int, page: int) -> list[dict[str, Any]]:
    _validate_paging(page_size, page)
    viewer_id = str(viewer_id)
    rows = db.execute(
        select(UserVisibility, UserAccount, QuizScore.match_percent)
        .join(UserAccount, UserAccount.id == UserVisibility.target_user_id)
        .outerjoin(
            QuizScore,
            and_(
                QuizScore.player_id == viewer_id,
                QuizScore.quiz_owner_id == UserVisibility.target_user_id,
            ),
        )
        .where(
            UserVisibility.source_user_id == viewer_id,
            UserVisibility.visibility == VisibilityState.VISIBLE.value,
        )
        .order_by(UserVisibility.updated_at.desc(), UserVisibility.id.desc())
        .offset(page_size * (page - 1))
        .limit(page_size)
    ).all()

    out: list[dict[str, Any]] = []
    for edge, user, match_percent in rows:
        out.append(
            {
                "visibilityId": edge.id,
                "userId": user.id,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "tags": list(user.tags or []),
                "matchPercent": int(match_percent) if match_percent is not None else None,
                "matchedAt": edge.updated_at,
            }
        )
    return out


def matches_count(db, viewer_id: str, page_size: int) -> int:
    _validate_paging(page_size)
    total = db.execute(
        select(func.count(UserVisibility.id)).where(
            UserVisibility.source_user_id == str(viewer_id),
            UserVisibility.visibility == VisibilityState.VISIBLE.value,
        )
    ).scalar() or 0
    return -(-int(total) // page_size)
