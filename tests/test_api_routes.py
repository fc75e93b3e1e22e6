import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from codequest.config import settings
from codequest.core.database import Base, get_db
from codequest.main import app
from codequest.models.activity import Activity
from codequest.services.challenge_catalog import challenge_catalog
from codequest.services.challenge_generator import challenge_generator
from codequest.services.code_review_service import code_review_service
from codequest.services.diagram_service import diagram_service
from codequest.services.harness.python_harness import PythonAdapter
from codequest.services.llm_client import LLMClient
from codequest.services.quiz_service import quiz_service
from codequest.services.rate_limiter import rate_limiter
from codequest.services.sandbox import NotFound, probe_toolchain

requires_python = pytest.mark.skipif(
    isinstance(probe_toolchain(*PythonAdapter.toolchain["interpreter"]), NotFound),
    reason="no python interpreter on PATH",
)


class FakeLLM:
    def __init__(self, reply=""):
        self.reply = reply
        self.available = True

    def complete(self, messages, temperature=0.7, max_tokens=1500):
        return self.reply


@pytest.fixture
def db_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    rate_limiter.reset()
    yield SessionLocal
    app.dependency_overrides.pop(get_db, None)
    rate_limiter.reset()


@pytest.fixture
def client(db_session_factory):
    return TestClient(app)


def test_root_and_security_headers(client):
    response = client.get("/", headers={"X-Request-ID": "req-42"})
    assert response.status_code == 200
    assert response.json()["status"] == "running"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Request-ID"] == "req-42"


def test_metrics_endpoint(client):
    client.get("/")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "codequest_http_requests_total" in response.text


def test_run_tests_rejects_unsupported_language(client):
    response = client.post("/api/v1/execution/run-tests", json={
        "language": "ruby",
        "functionName": "add",
        "code": "def add(a, b): a + b end",
        "testCases": [{"args": [2, 3], "expected": 5}],
    })
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "ruby" in body["error"]


def test_run_tests_rejects_empty_code(client):
    response = client.post("/api/v1/execution/run-tests", json={
        "language": "python",
        "functionName": "add",
        "code": "",
        "testCases": [{"args": [2, 3], "expected": 5}],
    })
    assert response.status_code == 422
    assert response.json()["error"] == "Code must not be empty"


def test_run_tests_request_validation(client):
    response = client.post("/api/v1/execution/run-tests", json={"language": "python"})
    assert response.status_code == 422
    fields = {detail["field"] for detail in response.json()["details"]}
    assert "body.functionName" in fields
    assert "body.code" in fields


@requires_python
def test_run_tests_scenario(client):
    response = client.post("/api/v1/execution/run-tests", json={
        "language": "python",
        "functionName": "add",
        "code": "def add(a,b):\n    return a+b",
        "testCases": [{"args": [2, 3], "expected": 5}, {"args": [2, 3], "expected": 6}],
    })
    assert response.status_code == 200
    body = response.json()
    assert body["allPassed"] is False
    assert body["message"] == "1/2 test case(s) passed"
    assert body["results"][0] == {
        "case": 1,
        "args": [2, 3],
        "expected": 5,
        "output": 5,
        "passed": True,
        "error": None,
        "description": "",
    }
    assert body["results"][1]["passed"] is False


@requires_python
def test_run_tests_fatal_shape(client):
    response = client.post("/api/v1/execution/run-tests", json={
        "language": "python",
        "functionName": "add",
        "code": "def add(a, b)\n    return a + b\n",
        "testCases": [{"args": [2, 3], "expected": 5}],
    })
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["results"] == []
    assert body["allPassed"] is False
    assert body["errorType"] == "runtime_error"
    assert "SyntaxError" in body["error"]


def test_run_tests_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "RUN_RATE_LIMIT_PER_MINUTE", 1)
    payload = {"language": "ruby", "functionName": "add", "code": "x", "testCases": [{"args": [], "expected": 1}]}
    assert client.post("/api/v1/execution/run-tests", json=payload).status_code == 422
    assert client.post("/api/v1/execution/run-tests", json=payload).status_code == 429


def test_languages_endpoint(client):
    response = client.get("/api/v1/execution/languages")
    assert response.status_code == 200
    assert {entry["language"] for entry in response.json()} == {"python", "java", "javascript", "c", "cpp"}


def test_topics(client):
    response = client.get("/api/v1/learning/topics")
    assert response.status_code == 200
    assert response.json() == {
        "topics": ["Loops", "Recursion", "Arrays", "Strings"],
        "difficulties": ["easy", "medium", "hard"],
    }


def test_challenge_withholds_expected_values(client):
    response = client.get("/api/v1/learning/challenge", params={
        "username": "ada", "topic": "Arrays", "difficulty": "hard", "language": "java",
    })
    assert response.status_code == 200
    challenge = response.json()["challenge"]
    assert challenge["id"] == "arrays-two-sum"
    assert challenge["functionName"] == "twoSum"
    assert challenge["tests"][0] == {"idx": 0, "args": [[2, 7, 11, 15], 9], "description": "basic pair at start"}
    assert "solution" not in challenge
    assert "expected" not in json.dumps(challenge["tests"])


def test_completed_challenges_are_not_offered_again(client):
    award = client.post("/api/v1/progress/award", json={
        "username": "ada", "challengeId": "arrays-two-sum", "difficulty": "hard", "language": "python",
    })
    assert award.status_code == 200
    assert award.json()["xpGained"] == 30

    response = client.get("/api/v1/learning/challenge", params={
        "username": "ada", "topic": "Arrays", "difficulty": "hard",
    })
    assert response.status_code == 404


@requires_python
def test_learning_run_awards_once_and_logs_activity(client, db_session_factory):
    solution = challenge_catalog.find_by_id("loops-sum-array").solution
    payload = {"challengeId": "loops-sum-array", "username": "ada", "code": solution, "language": "python"}

    first = client.post("/api/v1/learning/run-tests", json=payload).json()
    assert first["success"] is True
    assert first["allPassed"] is True
    assert first["xpGained"] == 10
    assert "First Solve" in first["badgesAwarded"]
    assert first["alreadyCompleted"] is False
    assert len(first["results"]) == 4

    second = client.post("/api/v1/learning/run-tests", json=payload).json()
    assert second["allPassed"] is True
    assert second["xpGained"] == 0
    assert second["alreadyCompleted"] is True

    progress = client.get("/api/v1/progress/ada").json()
    assert progress["xp"] == 10
    assert progress["completedChallengeIds"] == ["loops-sum-array"]

    db = db_session_factory()
    try:
        activity = db.query(Activity).one()
        assert activity.action == "challenge_completed"
        assert json.loads(activity.metadata_json)["challengeId"] == "loops-sum-array"
    finally:
        db.close()


@requires_python
def test_learning_run_failure_awards_nothing(client):
    payload = {
        "challengeId": "loops-sum-array",
        "username": "ada",
        "code": "def sum_array(arr):\n    return 0\n",
        "language": "python",
    }
    body = client.post("/api/v1/learning/run-tests", json=payload).json()
    assert body["allPassed"] is False
    assert body["xpGained"] == 0
    assert client.get("/api/v1/progress/ada").json()["xp"] == 0


@requires_python
def test_learning_run_fatal_is_reported_inline(client):
    payload = {"challengeId": "loops-sum-array", "username": "ada", "code": "def sum_array(:\n", "language": "python"}
    response = client.post("/api/v1/learning/run-tests", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["errorType"] == "runtime_error"
    assert body["results"] == []


def test_learning_run_unknown_challenge(client):
    payload = {"challengeId": "nope", "username": "ada", "code": "def f(): pass", "language": "python"}
    assert client.post("/api/v1/learning/run-tests", json=payload).status_code == 404


def test_generate_challenge_falls_back_to_catalog(client, monkeypatch):
    monkeypatch.setattr(challenge_generator, "client", LLMClient(api_key="", model="any"))
    response = client.post("/api/v1/learning/generate-challenge", json={
        "topic": "Strings", "difficulty": "medium", "language": "cpp",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "catalog"
    assert body["challenge"]["id"] == "strings-reverse"
    assert body["challenge"]["functionName"] == "reverseString"


def test_quiz_flow(client, monkeypatch):
    question = {
        "question": "Which keyword defines a function in Python?",
        "options": ["func", "def", "function", "lambda"],
        "answerIndex": 1,
        "explanation": "def starts a function definition.",
    }
    monkeypatch.setattr(quiz_service, "client", FakeLLM(json.dumps(question)))

    generated = client.post("/api/v1/quiz/generate", json={"language": "python", "difficulty": "easy"})
    assert generated.status_code == 200
    question_id = generated.json()["questionId"]
    assert "answerIndex" not in generated.json()

    submitted = client.post("/api/v1/quiz/submit", json={"questionId": question_id, "selectedIndex": 1})
    assert submitted.json() == {"correct": True, "correctIndex": 1, "explanation": "def starts a function definition."}
    again = client.post("/api/v1/quiz/submit", json={"questionId": question_id, "selectedIndex": 1})
    assert again.status_code == 404

    finished = client.post("/api/v1/quiz/finish", json={"username": "ada", "score": 1, "total": 1})
    assert finished.status_code == 200
    assert finished.json()["xpGained"] > 0

    invalid = client.post("/api/v1/quiz/finish", json={"username": "ada", "score": 3, "total": 1})
    assert invalid.status_code == 422


def test_review_endpoint_fallback(client, monkeypatch):
    monkeypatch.setattr(code_review_service, "client", LLMClient(api_key="", model="any"))
    response = client.post("/api/v1/review/", json={"code": "let x = 1;", "username": "ada"})
    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "fallback"
    assert body["language"] == "javascript"

    activities = client.get("/api/v1/activity/ada").json()["activities"]
    assert [a["action"] for a in activities] == ["code_review"]


def test_activity_log_dedupe_and_summary(client):
    entry = {"username": "ada", "action": "general", "description": "opened editor", "requestId": "client-1"}
    first = client.post("/api/v1/activity/log", json=entry)
    assert first.status_code == 201
    again = client.post("/api/v1/activity/log", json=entry)
    assert again.json()["id"] == first.json()["id"]

    client.post("/api/v1/activity/log", json={"username": "ada", "action": "quiz_session", "xp": 4})
    summary = client.get("/api/v1/activity/ada/summary").json()
    assert summary["total"] == 2
    assert summary["byAction"] == {"general": 1, "quiz_session": 1}
    assert summary["totalXp"] == 4

    bad = client.post("/api/v1/activity/log", json={"username": "ada", "action": "hacking"})
    assert bad.status_code == 422


def test_generate_diagram(client, monkeypatch):
    monkeypatch.setattr(diagram_service, "client", FakeLLM("```mermaid\nsequenceDiagram\n    A->>B: call\n```"))
    response = client.post("/api/v1/review/generate-diagram", json={
        "code": "a.call(b)", "language": "javascript", "diagramType": "sequence",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["diagram"] == "sequenceDiagram\n    A->>B: call"
    assert body["diagramType"] == "sequence"

    invalid = client.post("/api/v1/review/generate-diagram", json={"code": "a.call(b)", "diagramType": "pie"})
    assert invalid.status_code == 422
    assert invalid.json()["error"] == "Invalid diagram type"
