"""Learning routes - catalog challenges, graded runs and AI generation"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from codequest.api.deps import get_client_ip, get_request_id
from codequest.core.database import get_db
from codequest.core.exceptions import ResourceNotFoundError
from codequest.schemas.challenge import (
    ChallengeResponse,
    DifficultyEnum,
    GenerateChallengeRequest,
    GenerateChallengeResponse,
    LearningChallengeResponse,
    LearningRunRequest,
    LearningRunResponse,
    TopicsResponse,
)
from codequest.services.activity_service import activity_service
from codequest.services.challenge_catalog import challenge_catalog, normalize_language
from codequest.services.challenge_generator import challenge_generator
from codequest.services.code_executor import code_executor
from codequest.services.progress_service import progress_service
from codequest.services.rate_limiter import rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/topics", response_model=TopicsResponse)
def list_topics():
    """Topics available in the catalog"""
    return TopicsResponse(topics=challenge_catalog.list_topics())


@router.get("/challenge", response_model=LearningChallengeResponse)
def get_challenge(
    username: str = Query(..., min_length=1, max_length=100),
    topic: Optional[str] = Query(default=None, max_length=64),
    difficulty: Optional[DifficultyEnum] = None,
    language: str = Query(default="python", max_length=20),
    db: Session = Depends(get_db),
):
    """
    Random catalog challenge the learner has not completed yet

    Args:
        username: Learner name
        topic: Optional topic filter
        difficulty: Optional difficulty filter
        language: Language to project the challenge onto
        db: Database session

    Returns:
        Challenge with expected values withheld
    """
    completed = progress_service.completed_ids(db, username)
    challenge = challenge_catalog.pick_random(
        topic=topic,
        difficulty=difficulty.value if difficulty else None,
        exclude_ids=completed,
        language=language,
    )
    if challenge is None:
        raise ResourceNotFoundError("Uncompleted challenge for this topic/difficulty")

    return LearningChallengeResponse(challenge=ChallengeResponse.from_challenge(challenge))


@router.post("/run-tests", response_model=LearningRunResponse)
def run_challenge_tests(
    request: LearningRunRequest,
    client_ip: str = Depends(get_client_ip),
    request_id: Optional[str] = Depends(get_request_id),
    db: Session = Depends(get_db),
):
    """
    Grade a catalog challenge and award progress when every case passes

    Args:
        request: Challenge id, learner, code and language
        client_ip: Client address
        request_id: Id used to deduplicate the completion activity
        db: Database session

    Returns:
        Case results plus XP and badges gained
    """
    rate_limiter.check_run("learning", client_ip, request.username)

    language = normalize_language(request.language)
    challenge = challenge_catalog.find_by_id(request.challenge_id, language)
    if challenge is None:
        raise ResourceNotFoundError(f"Challenge {request.challenge_id}")

    result = code_executor.run_tests(language, challenge.function_name, request.code, challenge.test_cases)
    response = LearningRunResponse(
        success=not result.is_fatal,
        all_passed=result.all_passed,
        results=[case.model_dump(by_alias=True) for case in result.results],
        error=result.error,
        error_type=result.error_type,
        details=result.details,
    )
    if not result.all_passed:
        return response

    award = progress_service.award_completion(
        db,
        username=request.username,
        challenge_id=challenge.id,
        difficulty=challenge.difficulty,
        language=language,
        title=challenge.title,
        topic=challenge.topic,
    )
    response.xp_gained = award.xp_gained
    response.badges_awarded = award.badges_awarded
    response.already_completed = award.already_completed

    if not award.already_completed:
        activity_service.log_activity(
            db,
            username=request.username,
            action="challenge_completed",
            description=f"Completed challenge: {challenge.title}",
            xp=award.xp_gained,
            metadata={
                "challengeId": challenge.id,
                "topic": challenge.topic,
                "difficulty": challenge.difficulty.value,
                "language": language,
                "xpGained": award.xp_gained,
            },
            request_id=request_id,
        )
    return response


@router.post("/generate-challenge", response_model=GenerateChallengeResponse)
def generate_challenge(request: GenerateChallengeRequest):
    """
    AI generated challenge, or a catalog one when generation is unavailable

    Args:
        request: Topic, difficulty, language and ids to avoid

    Returns:
        Challenge including its solution and test cases
    """
    challenge, source, message = challenge_generator.generate(
        topic=request.topic,
        difficulty=request.difficulty,
        language=request.language,
        exclude_ids=request.exclude_ids,
    )
    return GenerateChallengeResponse(source=source, challenge=challenge, message=message)
