from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from ..config import QUIZ_DOCUMENT_VERSION, QUIZ_MAX_OPTIONS, QUIZ_MAX_QUESTION_SCORE, QUIZ_MAX_QUESTIONS
from ..errors import CorruptQuizError, NotFoundError, ValidationError
from ..models import Questionnaire, touch
from ..schemas import Quiz

logger = logging.getLogger(__name__)


@dataclass
class QuizResult:
    match_percent: int
    passed: bool
    awarded: int
    possible: int


def validate_quiz(quiz: Quiz) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []

    if quiz.score_required <= 0:
        errors.append({"code": "invalid_score_required", "path": "scoreRequired", "message": "ScoreRequired must be greater than zero."})

    if not quiz.questions:
        errors.append({"code": "missing_questions", "path": "questions", "message": "Quiz must contain at least one question."})
        return errors
    if len(quiz.questions) > QUIZ_MAX_QUESTIONS:
        errors.append({"code": "too_many_questions", "path": "questions", "message": f"Quiz can contain at most {QUIZ_MAX_QUESTIONS} questions."})

    total = 0
    for q_idx, question in enumerate(quiz.questions):
        path = f"questions[{q_idx}]"
        if not question.question_text.strip():
            errors.append({"code": "missing_question_text", "path": f"{path}.questionText", "message": "All questions must have text."})

        options = question.options
        if len(options) < 2:
            errors.append({"code": "too_few_options", "path": f"{path}.options", "message": "Each question must have at least two answers."})
        elif len(options) > QUIZ_MAX_OPTIONS:
            errors.append({"code": "too_many_options", "path": f"{path}.options", "message": f"Each question can have at most {QUIZ_MAX_OPTIONS} answers."})

        seen: set[str] = set()
        for o_idx, option in enumerate(options):
            text = option.text.strip()
            if not text:
                errors.append({"code": "missing_option_text", "path": f"{path}.options[{o_idx}].text", "message": "All answer options must have text."})
                continue
            key = text.lower()
            if key in seen:
                errors.append({"code": "duplicate_option", "path": f"{path}.options[{o_idx}].text", "message": f"Duplicate answer option '{text}'."})
            seen.add(key)

        if question.correct_option_index < 0 or question.correct_option_index >= len(options):
            errors.append({"code": "invalid_correct_index", "path": f"{path}.correctOptionIndex", "message": "Each question must have a valid correct answer index."})

        if question.score <= 0 or question.score > QUIZ_MAX_QUESTION_SCORE:
            errors.append({"code": "invalid_score", "path": f"{path}.score", "message": f"Each question must have a score between 1 and {QUIZ_MAX_QUESTION_SCORE}."})
        else:
            total += question.score

    if quiz.score_required > 0 and quiz.score_required > total:
        errors.append(
            {
                "code": "score_required_too_high",
                "path": "scoreRequired",
                "message": "ScoreRequired cannot be greater than the total possible score of all questions.",
            }
        )
    return errors


def score_submission(quiz: Quiz, answers: list[int]) -> QuizResult:
    if len(answers) != len(quiz.questions):
        raise ValidationError("Number of answers does not match number of questions.")

    awarded = 0
    possible = 0
    for question, answer in zip(quiz.questions, answers):
        possible += question.score
        if answer == question.correct_option_index:
            awarded += question.score

    # Nearest whole percent, halves rounded up: 2/3 gives 67 and 1/6 gives 17 (a floor would give 66 and 16).
    match_percent = (200 * awarded + possible) // (2 * possible) if possible > 0 else 0
    return QuizResult(
        match_percent=match_percent,
        passed=awarded >= quiz.score_required,
        awarded=awarded,
        possible=possible,
    )


def encode_quiz(quiz: Quiz) -> dict[str, Any]:
    return {"version": QUIZ_DOCUMENT_VERSION, **quiz.model_dump(mode="json")}


def decode_quiz(document: Any) -> Quiz:
    if not isinstance(document, dict):
        raise CorruptQuizError("Stored quiz could not be read.")
    if document.get("version") != QUIZ_DOCUMENT_VERSION:
        raise CorruptQuizError(f"Stored quiz has unsupported version {document.get('version')!r}.")
    payload = {k: v for k, v in document.items() if k != "version"}
    try:
        return Quiz.model_validate(payload)
    except PydanticValidationError as exc:
        raise CorruptQuizError("Stored quiz could not be read.") from exc


def public_questions(quiz: Quiz) -> list[dict[str, Any]]:
    return [
        {
            "questionText": q.question_text,
            "options": [{"text": o.text} for o in q.options],
        }
        for q in quiz.questions
    ]


def _get_questionnaire(db, owner_id: str, *, for_update: bool = False) -> Questionnaire | None:
    stmt = select(Questionnaire).where(Questionnaire.user_id == str(owner_id))
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalars().first()


def set_quiz(db, owner_id: str, quiz: Quiz) -> None:
    errors = validate_quiz(quiz)
    if errors:
        raise ValidationError(errors[0]["message"], code=errors[0]["code"])

    questionnaire = _get_questionnaire(db, owner_id, for_update=True)
    if questionnaire is None:
        questionnaire = touch(Questionnaire(user_id=str(owner_id)), created=True)
        db.add(questionnaire)
    else:
        touch(questionnaire)
    questionnaire.quiz = encode_quiz(quiz)
    db.commit()
    logger.info("[quiz] owner=%s saved quiz questions=%s score_required=%s", owner_id, len(quiz.questions), quiz.score_required)


def find_quiz(db, owner_id: str) -> Quiz | None:
    questionnaire = _get_questionnaire(db, owner_id)
    if questionnaire is None or questionnaire.quiz is None:
        return None
    return decode_quiz(questionnaire.quiz)


def get_quiz(db, owner_id: str) -> Quiz:
    quiz = find_quiz(db, owner_id)
    if quiz is None:
        raise NotFoundError("Your quiz has not been set up yet.", code="quiz_not_set_up")
    return quiz
