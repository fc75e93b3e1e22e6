"""Progress routes"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from codequest.core.database import get_db
from codequest.schemas.progress import AwardRequest, AwardResult, ProgressResponse
from codequest.services.progress_service import progress_service

router = APIRouter()


@router.get("/{username}", response_model=ProgressResponse)
def get_progress(
    username: str = Path(..., min_length=1, max_length=100),
    db: Session = Depends(get_db),
):
    """
    Get a learner's XP, badges and completed challenges

    Args:
        username: Learner name
        db: Database session

    Returns:
        Progress snapshot (created empty on first access)
    """
    return progress_service.get_progress(db, username)


@router.post("/award", response_model=AwardResult)
def award_completion(request: AwardRequest, db: Session = Depends(get_db)):
    """Record a completed challenge; repeats are reported as already completed"""
    return progress_service.award_completion(
        db,
        username=request.username,
        challenge_id=request.challenge_id,
        difficulty=request.difficulty,
        language=request.language,
        title=request.title,
        topic=request.topic,
    )
