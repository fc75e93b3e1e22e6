"""Activity log service - best-effort append-only learner history."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from codequest.core.exceptions import ValidationError
from codequest.models.activity import ACTIVITY_ACTIONS, ACTIVITY_STATUSES, Activity
from codequest.schemas.activity import ActivityResponse, ActivitySummary

logger = logging.getLogger(__name__)


class ActivityService:
    """Persist activity entries without ever failing the caller's request."""

    @staticmethod
    def _find_by_request_id(db: Session, request_id: str) -> Optional[Activity]:
        return db.query(Activity).filter(Activity.request_id == request_id).first()

    @classmethod
    def log_activity(
        cls,
        db: Session,
        *,
        username: str,
        action: str = "general",
        description: Optional[str] = None,
        xp: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
        status: str = "completed",
        request_id: Optional[str] = None,
    ) -> Optional[Activity]:
        """
        Append one activity row.

        A repeated ``request_id`` returns the row stored the first time.
        Database failures are logged and rolled back, and None is returned.

        Raises:
            ValidationError: Unknown action or status
        """
        if action not in ACTIVITY_ACTIONS:
            raise ValidationError(f"Unknown activity action: {action}")
        if status not in ACTIVITY_STATUSES:
            raise ValidationError(f"Unknown activity status: {status}")

        try:
            if request_id:
                existing = cls._find_by_request_id(db, request_id)
                if existing is not None:
                    return existing

            activity = Activity(
                username=username,
                action=action,
                description=description,
                xp=max(0, int(xp or 0)),
                status=status,
                request_id=request_id,
                metadata_json=json.dumps(metadata or {}, ensure_ascii=False, default=str),
            )
            db.add(activity)
            db.commit()
            db.refresh(activity)
            return activity
        except IntegrityError:
            db.rollback()
            # Lost a race with a retry carrying the same request id
            if request_id:
                existing = cls._find_by_request_id(db, request_id)
                if existing is not None:
                    return existing
            logger.warning(f"Activity for {username} rejected by constraints (action={action})")
            return None
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to log activity for {username} (action={action}): {e}")
            return None

    @staticmethod
    def to_response(activity: Activity) -> ActivityResponse:
        try:
            metadata = json.loads(activity.metadata_json) if activity.metadata_json else {}
        except json.JSONDecodeError:
            metadata = {}
        return ActivityResponse(
            id=activity.id,
            username=activity.username,
            action=activity.action,
            description=activity.description,
            xp=activity.xp or 0,
            status=activity.status,
            request_id=activity.request_id,
            metadata=metadata if isinstance(metadata, dict) else {"value": metadata},
            created_at=activity.created_at,
        )

    @staticmethod
    def list_activities(db: Session, username: str, limit: int = 50) -> List[Activity]:
        """Newest first"""
        return (
            db.query(Activity)
            .filter(Activity.username == username)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def summarize(db: Session, username: str) -> ActivitySummary:
        rows = (
            db.query(Activity.action, func.count(Activity.id), func.coalesce(func.sum(Activity.xp), 0))
            .filter(Activity.username == username)
            .group_by(Activity.action)
            .all()
        )
        by_action = {action: int(count) for action, count, _ in rows}
        return ActivitySummary(
            username=username,
            total=sum(by_action.values()),
            by_action=by_action,
            total_xp=sum(int(xp) for _, _, xp in rows),
        )


activity_service = ActivityService()
