import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from codequest.core.database import Base
from codequest.core.exceptions import ValidationError
from codequest.models.activity import Activity
from codequest.services.activity_service import activity_service


def _make_session():
    engine = create_engine("sqlite:///:memory:")
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return SessionLocal()


def test_log_and_list_newest_first():
    db = _make_session()
    try:
        activity_service.log_activity(db, username="ada", action="quiz_session", xp=6, metadata={"score": 3})
        activity_service.log_activity(db, username="ada", action="code_review", description="Reviewed python code")
        activity_service.log_activity(db, username="grace", action="general")

        rows = activity_service.list_activities(db, "ada")
        assert [row.action for row in rows] == ["code_review", "quiz_session"]

        response = activity_service.to_response(rows[1])
        assert response.metadata == {"score": 3}
        assert response.xp == 6
        assert response.status == "completed"

        assert len(activity_service.list_activities(db, "ada", limit=1)) == 1
    finally:
        db.close()


def test_request_id_deduplicates_retries():
    db = _make_session()
    try:
        first = activity_service.log_activity(db, username="ada", action="challenge_completed", xp=10, request_id="req-1")
        again = activity_service.log_activity(db, username="ada", action="challenge_completed", xp=10, request_id="req-1")
        assert first.id == again.id
        assert db.query(Activity).count() == 1
    finally:
        db.close()


def test_unknown_action_or_status_is_rejected():
    db = _make_session()
    try:
        with pytest.raises(ValidationError):
            activity_service.log_activity(db, username="ada", action="hacking")
        with pytest.raises(ValidationError):
            activity_service.log_activity(db, username="ada", status="exploded")
    finally:
        db.close()


def test_database_failure_is_swallowed(monkeypatch):
    db = _make_session()
    try:
        def broken_commit():
            raise OperationalError("INSERT INTO activities", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", broken_commit)
        assert activity_service.log_activity(db, username="ada", action="general") is None
    finally:
        db.close()


def test_summary_counts_actions_and_xp():
    db = _make_session()
    try:
        activity_service.log_activity(db, username="ada", action="challenge_completed", xp=10)
        activity_service.log_activity(db, username="ada", action="challenge_completed", xp=20)
        activity_service.log_activity(db, username="ada", action="quiz_session", xp=4)
        activity_service.log_activity(db, username="ada", action="code_review")

        summary = activity_service.summarize(db, "ada")
        assert summary.total == 4
        assert summary.by_action == {"challenge_completed": 2, "quiz_session": 1, "code_review": 1}
        assert summary.total_xp == 34

        empty = activity_service.summarize(db, "nobody")
        assert empty.total == 0
        assert empty.total_xp == 0
    finally:
        db.close()
