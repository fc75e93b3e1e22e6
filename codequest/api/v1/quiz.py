"""Quiz routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from codequest.core.database import get_db
from codequest.schemas.quiz import (
    QuizFinishRequest,
    QuizFinishResponse,
    QuizGenerateRequest,
    QuizQuestionResponse,
    QuizSubmitRequest,
    QuizSubmitResponse,
)
from codequest.services.quiz_service import quiz_service

router = APIRouter()


@router.post("/generate", response_model=QuizQuestionResponse)
def generate_question(request: QuizGenerateRequest):
    """One multiple-choice question, answer withheld"""
    return quiz_service.generate_question(request.language, request.difficulty, request.topic)


@router.post("/submit", response_model=QuizSubmitResponse)
def submit_answer(request: QuizSubmitRequest):
    """
    Check an answer

    Each question can be answered once; a second submit returns 404.
    """
    return quiz_service.submit_answer(request.question_id, request.selected_index)


@router.post("/finish", response_model=QuizFinishResponse)
def finish_quiz(request: QuizFinishRequest, db: Session = Depends(get_db)):
    return quiz_service.finish_quiz(db, request.username, request.score, request.total, request.language)
