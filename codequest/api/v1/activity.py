"""Activity log routes"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from codequest.api.deps import get_request_id
from codequest.core.database import get_db
from codequest.core.exceptions import BaseAPIException
from codequest.schemas.activity import ActivityCreate, ActivityListResponse, ActivityResponse, ActivitySummary
from codequest.services.activity_service import activity_service

router = APIRouter()


@router.post("/log", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
def log_activity(
    request: ActivityCreate,
    header_request_id: Optional[str] = Depends(get_request_id),
    db: Session = Depends(get_db),
):
    """
    Append an activity entry

    The body's ``requestId`` deduplicates retries; without one nothing is
    deduplicated.
    """
    activity = activity_service.log_activity(
        db,
        username=request.username,
        action=request.action,
        description=request.description,
        xp=request.xp,
        metadata=request.metadata,
        status=request.status,
        request_id=request.request_id,
    )
    if activity is None:
        raise BaseAPIException(
            "Activity could not be recorded",
            status_code=503,
            details={"requestId": header_request_id},
        )
    return activity_service.to_response(activity)


@router.get("/{username}", response_model=ActivityListResponse)
def list_activities(
    username: str = Path(..., min_length=1, max_length=100),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Newest activities first"""
    activities = activity_service.list_activities(db, username, limit)
    return ActivityListResponse(activities=[activity_service.to_response(a) for a in activities])


@router.get("/{username}/summary", response_model=ActivitySummary)
def activity_summary(
    username: str = Path(..., min_length=1, max_length=100),
    db: Session = Depends(get_db),
):
    return activity_service.summarize(db, username)
