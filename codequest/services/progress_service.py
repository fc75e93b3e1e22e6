"""Progress service - XP, completed challenges and badges"""

import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from codequest.config import settings
from codequest.core.exceptions import ValidationError
from codequest.models.progress import Badge, CompletedChallenge, Progress
from codequest.schemas.execution import LANGUAGE_ALIASES
from codequest.schemas.progress import AwardResult, CompletedChallengeEntry, ProgressResponse
from codequest.services.challenge_catalog import ChallengeCatalog, challenge_catalog

logger = logging.getLogger(__name__)

XP_BY_DIFFICULTY = {"easy": 10, "medium": 20, "hard": 30}

MILESTONE_BADGES = (
    (5, "Apprentice (5)"),
    (10, "Pro (10)"),
    (20, "Master (20)"),
)

LANGUAGE_LABELS = {
    "python": "Python",
    "java": "Java",
    "javascript": "JavaScript",
    "c": "C",
    "cpp": "C++",
}


def _value(raw) -> str:
    return str(getattr(raw, "value", raw) or "").strip().lower()


class ProgressService:
    """Service for learner progress"""

    def __init__(self, catalog: Optional[ChallengeCatalog] = None):
        self.catalog = catalog or challenge_catalog

    @staticmethod
    def _get_or_create(db: Session, username: str) -> Progress:
        progress = db.query(Progress).filter(Progress.username == username).first()
        if progress is not None:
            return progress

        progress = Progress(username=username, xp=0)
        db.add(progress)
        try:
            db.commit()
        except IntegrityError:
            # Another request created the record first
            db.rollback()
            return db.query(Progress).filter(Progress.username == username).one()
        db.refresh(progress)
        return progress

    def get_progress(self, db: Session, username: str) -> ProgressResponse:
        """
        Get a learner's progress, creating an empty record on first access

        Args:
            db: Database session
            username: Learner name

        Returns:
            Progress snapshot
        """
        progress = self._get_or_create(db, username)
        completed = (
            db.query(CompletedChallenge)
            .filter(CompletedChallenge.username == username)
            .order_by(CompletedChallenge.completed_at, CompletedChallenge.id)
            .all()
        )
        badges = (
            db.query(Badge)
            .filter(Badge.username == username)
            .order_by(Badge.awarded_at, Badge.id)
            .all()
        )
        return ProgressResponse(
            username=username,
            xp=progress.xp,
            badges=[badge.name for badge in badges],
            completed_challenge_ids=[row.challenge_id for row in completed],
            completed_challenges=[CompletedChallengeEntry(**row.to_dict()) for row in completed],
        )

    def completed_ids(self, db: Session, username: str) -> Set[str]:
        rows = db.query(CompletedChallenge.challenge_id).filter(CompletedChallenge.username == username).all()
        return {row[0] for row in rows}

    def _earned_badges(
        self,
        previous: Iterable[CompletedChallenge],
        completed_ids: Set[str],
        difficulty: str,
        language: str,
        topic: Optional[str],
    ) -> List[str]:
        previous = list(previous)
        total = len(previous) + 1
        earned = []

        if not previous:
            earned.append("First Solve")
        if not any(row.language == language for row in previous):
            earned.append(f"First {LANGUAGE_LABELS.get(language, language.title())} Solve")
        if difficulty == "hard" and not any(row.difficulty == "hard" for row in previous):
            earned.append("Hard Hitter")
        for threshold, name in MILESTONE_BADGES:
            if total >= threshold:
                earned.append(name)

        if topic:
            catalog_ids = {c.id for c in self.catalog.all_by_topic_and_difficulty(topic, difficulty)}
            if catalog_ids and catalog_ids <= completed_ids:
                earned.append(f"{topic}-{difficulty}-master")

        return earned

    def award_completion(
        self,
        db: Session,
        username: str,
        challenge_id: str,
        difficulty,
        language: str,
        title: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> AwardResult:
        """
        Record a solved challenge and award XP and badges.

        Idempotent per (username, challenge_id): a repeat returns
        ``already_completed`` with no XP and no badges.

        Raises:
            ValidationError: Unknown difficulty
        """
        difficulty = _value(difficulty)
        if difficulty not in XP_BY_DIFFICULTY:
            raise ValidationError(f"Unknown difficulty: {difficulty}")
        language = _value(language)
        language = LANGUAGE_ALIASES.get(language, language)

        progress = self._get_or_create(db, username)

        previous = db.query(CompletedChallenge).filter(CompletedChallenge.username == username).all()
        if any(row.challenge_id == challenge_id for row in previous):
            return AwardResult(already_completed=True, total_xp=progress.xp)

        if topic is None:
            entry = self.catalog.find_by_id(challenge_id)
            topic = entry.topic if entry else None
            title = title or (entry.title if entry else None)

        xp_gained = XP_BY_DIFFICULTY[difficulty]
        completed_ids = {row.challenge_id for row in previous} | {challenge_id}
        owned = {row[0] for row in db.query(Badge.name).filter(Badge.username == username).all()}
        new_badges = [
            name for name in self._earned_badges(previous, completed_ids, difficulty, language, topic)
            if name not in owned
        ]

        db.add(CompletedChallenge(
            username=username,
            challenge_id=challenge_id,
            title=title,
            topic=topic,
            difficulty=difficulty,
            language=language,
        ))
        progress.xp = Progress.xp + xp_gained

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if not self._is_completed(db, username, challenge_id):
                raise
            logger.info(f"Concurrent completion of {challenge_id} by {username}; treating as already completed")
            progress = self._get_or_create(db, username)
            return AwardResult(already_completed=True, total_xp=progress.xp)

        awarded = self._grant_badges(db, username, new_badges)
        db.refresh(progress)
        logger.info(f"{username} completed {challenge_id} (+{xp_gained} XP, badges: {awarded})")
        return AwardResult(
            xp_gained=xp_gained,
            badges_awarded=awarded,
            already_completed=False,
            total_xp=progress.xp,
        )

    @staticmethod
    def _is_completed(db: Session, username: str, challenge_id: str) -> bool:
        return db.query(CompletedChallenge.id).filter(
            CompletedChallenge.username == username,
            CompletedChallenge.challenge_id == challenge_id,
        ).first() is not None

    @staticmethod
    def _grant_badges(db: Session, username: str, names: List[str]) -> List[str]:
        """Insert badges one by one after the completion is committed; ones already held are skipped."""
        granted = []
        for name in names:
            db.add(Badge(username=username, name=name))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info(f"Badge {name!r} for {username} was granted concurrently")
                continue
            granted.append(name)
        return granted

    def award_quiz(self, db: Session, username: str, score: int, total: int, language: str = "python") -> AwardResult:
        """Quiz XP: ``min(cap, score * per_correct)``; nothing is written for zero."""
        if score < 0 or total < 0 or score > total:
            raise ValidationError("score must be between 0 and total")

        progress = self._get_or_create(db, username)
        xp_gained = min(settings.QUIZ_XP_CAP, score * settings.QUIZ_XP_PER_CORRECT)
        if xp_gained <= 0:
            return AwardResult(xp_gained=0, total_xp=progress.xp)

        progress.xp = Progress.xp + xp_gained
        db.commit()
        db.refresh(progress)
        logger.info(f"{username} finished a {language} quiz {score}/{total} (+{xp_gained} XP)")
        return AwardResult(xp_gained=xp_gained, total_xp=progress.xp)


# Singleton instance
progress_service = ProgressService()
