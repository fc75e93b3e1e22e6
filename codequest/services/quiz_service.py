"""Quiz service - one multiple-choice question at a time"""

import logging
import secrets
import time
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from codequest.config import settings
from codequest.core.exceptions import GeneratorError, ResourceNotFoundError
from codequest.schemas.quiz import (
    QuizFinishResponse,
    QuizQuestion,
    QuizQuestionResponse,
    QuizSubmitResponse,
)
from codequest.services.activity_service import activity_service
from codequest.services.expiring_cache import ExpiringCache
from codequest.services.llm_client import LLMClient, extract_first_json_object
from codequest.services.progress_service import ProgressService, progress_service

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = "Return only VALID JSON. No markdown."


def build_question_prompt(language: str, difficulty: str, topic: Optional[str] = None) -> str:
    focus = f"\nTopic: {topic}" if topic else ""
    return f"""Generate ONE multiple-choice programming question about {language}.
Difficulty: {difficulty}{focus}

Return ONLY a valid JSON object (no prose, no markdown) with exactly:
{{
  "question": "Clear question text",
  "code": "code snippet here (use empty string if not needed)",
  "options": ["option A", "option B", "option C", "option D"],
  "answerIndex": 0,
  "explanation": "Brief explanation of the correct answer"
}}
"""


class QuizService:
    """
    Generates questions, checks answers and awards quiz XP.

    Answers live only in the injected cache; a question can be answered
    once and is evicted on submit or when its TTL runs out.
    """

    def __init__(
        self,
        cache: Optional[ExpiringCache] = None,
        client: Optional[LLMClient] = None,
        progress: Optional[ProgressService] = None,
    ):
        self.cache = cache or ExpiringCache(settings.QUIZ_QUESTION_TTL_SECONDS)
        self.client = client or LLMClient(settings.GROQ_SINGLE_QUIZ_API_KEY, settings.QUIZ_MODEL)
        self.progress = progress or progress_service

    @staticmethod
    def _new_question_id() -> str:
        return f"{int(time.time() * 1000)}_{secrets.token_hex(5)}"

    def generate_question(self, language: str = "python", difficulty: str = "easy", topic: Optional[str] = None) -> QuizQuestionResponse:
        """
        Ask the model for one question and store its answer.

        Raises:
            GeneratorError: Missing key, API failure or malformed question
        """
        if not self.client.available:
            raise GeneratorError("Missing GROQ_SINGLE_QUIZ_API_KEY", status_code=401)

        content = self.client.complete(
            [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_question_prompt(language, difficulty, topic)},
            ],
            temperature=0.7,
            max_tokens=900,
        )

        data = extract_first_json_object(content)
        if data is None:
            logger.warning(f"Quiz model returned non-JSON: {content[:300]!r}")
            raise GeneratorError("Model returned invalid JSON. Please retry.")
        try:
            question = QuizQuestion.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Quiz question rejected: {e.error_count()} validation error(s)")
            raise GeneratorError("Invalid question format from model")

        question_id = self._new_question_id()
        self.cache.set(question_id, question)

        return QuizQuestionResponse(
            question_id=question_id,
            question=question.question,
            options=question.options,
            code=question.code or "",
            language=language,
            difficulty=difficulty,
        )

    def submit_answer(self, question_id: str, selected_index: int) -> QuizSubmitResponse:
        """
        Check an answer. The question is consumed.

        Raises:
            ResourceNotFoundError: Unknown, expired or already answered question
        """
        question: Optional[QuizQuestion] = self.cache.pop(question_id)
        if question is None:
            raise ResourceNotFoundError("Question")

        return QuizSubmitResponse(
            correct=selected_index == question.answer_index,
            correct_index=question.answer_index,
            explanation=question.explanation,
        )

    def finish_quiz(self, db: Session, username: str, score: int, total: int, language: str = "python") -> QuizFinishResponse:
        """Award quiz XP and record the session."""
        award = self.progress.award_quiz(db, username, score, total, language)
        if award.xp_gained > 0:
            activity_service.log_activity(
                db,
                username=username,
                action="quiz_session",
                description=f"Completed {language} quiz: {score}/{total}",
                xp=award.xp_gained,
                metadata={"score": score, "total": total, "language": language},
            )
        return QuizFinishResponse(xp_gained=award.xp_gained, total_xp=award.total_xp)


# Singleton instance
quiz_service = QuizService()
