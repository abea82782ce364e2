from typing import Any

from fastapi import APIRouter, Depends, Response

from .. import repo
from ..auth.deps import get_current_user
from ..config import RL_QUIZ_SUBMIT_LIMIT, RL_WINDOW_SECONDS
from ..deps import get_db
from ..errors import NotFoundError, ValidationError
from ..schemas import Quiz, QuizSubmitRequest
from ..services import matching, quiz as quiz_service
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_QUIZ_SUBMIT = rate_limit_dependency("quiz_submit", RL_QUIZ_SUBMIT_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def quiz_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "quiz"}


@router.post("/quiz/edit", status_code=204)
def edit_quiz(payload: Quiz, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> Response:
    quiz_service.set_quiz(db, current_user["id"], payload)
    return Response(status_code=204)


@router.get("/quiz/my")
def get_my_quiz(current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    quiz = quiz_service.get_quiz(db, current_user["id"])
    return quiz.model_dump(by_alias=True)


@router.get("/quiz/user/{user_id}")
def get_user_quiz(user_id: str, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> list[dict[str, Any]]:
    if not repo.user_exists(db, user_id):
        raise NotFoundError("User not found.")
    quiz = quiz_service.find_quiz(db, user_id)
    if quiz is None:
        raise NotFoundError("The user's quiz has not been set up yet.", code="quiz_not_set_up")
    return quiz_service.public_questions(quiz)


@router.post("/quiz/submit", dependencies=[RL_QUIZ_SUBMIT])
def submit_quiz(payload: QuizSubmitRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    target_user_id = payload.target_user_id.strip()
    if not target_user_id:
        raise ValidationError("Target user id can not be empty.")
    return matching.submit_quiz(db, current_user["id"], target_user_id, payload.answers)


@router.get("/quiz/matchPercent/{user_id}")
def get_match_percent(user_id: str, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> int:
    return matching.get_match_percent(db, current_user["id"], user_id)
