"""FastAPI 엔드포인트 통합 테스트 (원격 API는 FakeClient 로 대체)."""

import pytest
import requests
from fastapi.testclient import TestClient

from conftest import FakeClient
from api.app import create_app
from smartdriller.services.api_client import RemoteDataClient
from smartdriller.services.storage import MemoryStore


@pytest.fixture
def fake():
    return FakeClient(bookmarks={"sample-2"})


@pytest.fixture
def http(fake):
    app = create_app(client=fake, store=MemoryStore(), sync_workers=0)
    with TestClient(app) as c:
        yield c


def start_sample(http, exam_type="study"):
    r = http.post("/api/exam/start-sample", params={"exam_type": exam_type})
    assert r.status_code == 200
    return r.json()


def test_state_without_session_is_404(http):
    assert http.get("/api/exam/state").status_code == 404


def test_start_sample_study(http):
    state = start_sample(http)
    assert state["total"] == 5
    assert state["mode"] == "study"
    assert state["session_key"] == "study_progress_mth101_2023"
    assert state["bookmarked"] == ["sample-2"]
    assert state["remaining_seconds"] is None


def test_question_hides_answer_until_revealed(http):
    start_sample(http)
    q = http.get("/api/exam/question/0").json()
    assert q["correct_option"] is None
    assert q["explanation"] is None
    assert [s["kind"] for s in q["question_segments"]] == ["text", "math", "text"]

    http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 1})
    revealed = http.post("/api/exam/reveal", json={"question_id": "sample-1"}).json()
    assert revealed["correct_option"] == 2
    assert revealed["studied"] is True

    r = http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 2}).json()
    assert r["saved_answer"] == 1
    assert r["frozen"] is True


def test_question_index_out_of_range(http):
    start_sample(http)
    assert http.get("/api/exam/question/5").status_code == 404


def test_invalid_option_is_400(http):
    start_sample(http)
    r = http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 9})
    assert r.status_code == 400


def test_navigate_clamps(http):
    start_sample(http)
    assert http.post("/api/exam/navigate", json={"index": 50}).json()["index"] == 4
    assert http.post("/api/exam/navigate", json={"index": -3}).json()["index"] == 0


def test_progress_resumes_on_restart(http):
    start_sample(http)
    http.post("/api/exam/answer", json={"question_id": "sample-3", "option": 3})
    http.post("/api/exam/navigate", json={"index": 2})

    state = start_sample(http)
    assert state["resumed"] is True
    assert state["current_index"] == 2
    assert state["answers"] == {"sample-3": 3}


def test_bookmark_toggle(http, fake):
    start_sample(http)
    r = http.post("/api/exam/bookmark", json={"question_id": "sample-1"}).json()
    assert r["bookmarked"] is True
    assert ("post_bookmark", "sample-1") in fake.calls
    r = http.post("/api/exam/bookmark", json={"question_id": "sample-1"}).json()
    assert r["bookmarked"] is False


def test_failed_sync_shows_up_in_notifications(fake):
    fake.fail.add("post_bookmark")
    app = create_app(client=fake, store=MemoryStore(), sync_workers=0)
    with TestClient(app) as c:
        start_sample(c)
        r = c.post("/api/exam/bookmark", json={"question_id": "sample-1"}).json()
        assert r["bookmarked"] is True
        notes = c.get("/api/notifications").json()["notifications"]
        assert len(notes) == 1
        assert notes[0]["level"] == "error"
        assert c.get("/api/notifications").json()["notifications"] == []


def test_readback(http):
    start_sample(http)
    spoken = http.get("/api/exam/readback").json()
    assert spoken["text"].startswith("Question: Simplify")
    assert "Options: A." in spoken["text"]

    http.post("/api/exam/reveal", json={"question_id": "sample-1"})
    spoken = http.get("/api/exam/readback").json()
    assert "The correct answer is: B." in spoken["text"]


def test_report(http, fake):
    start_sample(http)
    assert http.post("/api/exam/report", json={"question_id": "sample-1", "description": " "}).status_code == 400
    r = http.post("/api/exam/report", json={"question_id": "sample-1", "description": "typo"})
    assert r.json() == {"ok": True}
    assert ("post_report", "sample-1", "typo") in fake.calls


def test_mock_finish_submits_result(http, fake):
    state = start_sample(http, "mock")
    assert state["remaining_seconds"] == pytest.approx(600, abs=5)
    assert http.post("/api/exam/reveal", json={"question_id": "sample-1"}).status_code == 400
    assert http.get("/api/exam/question/0").json()["correct_option"] is None

    http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 2})
    http.post("/api/exam/answer", json={"question_id": "sample-2", "option": 1})
    result = http.post("/api/exam/finish").json()
    assert result["correct"] == 1
    assert result["percentage"] == 20
    assert result["server_result"] == {"_id": "r1", "percentage": 0}

    payload = fake.results[0]
    assert payload["totalQuestions"] == 5
    assert payload["timeAllowed"] == 10

    csv_resp = http.get("/api/exam/result.csv")
    assert csv_resp.status_code == 200
    assert csv_resp.text.splitlines()[1] == '"1","sample-1","Fractions","B","B","Correct"'


def test_study_finish_does_not_submit(http, fake):
    start_sample(http)
    http.post("/api/exam/finish")
    assert fake.results == []


def test_result_csv_before_finish_is_404(http):
    start_sample(http)
    assert http.get("/api/exam/result.csv").status_code == 404


def test_exit_clears_session(http):
    start_sample(http)
    http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 2})
    assert http.post("/api/exam/exit").json() == {"ok": True}
    assert http.get("/api/exam/state").status_code == 404
    assert start_sample(http)["resumed"] is False


def test_load_fetches_questions(http, fake):
    r = http.post("/api/exam/load", json={"course": "MTH101", "year": "2023"})
    assert r.status_code == 200
    assert r.json()["question_ids"] == ["f1", "f2", "f3"]
    assert ("fetch_questions", "MTH101", "2023") in fake.calls


def test_load_network_failure_is_503(http, fake):
    fake.fail.add("fetch_questions")
    r = http.post("/api/exam/load", json={"course": "MTH101", "year": "2023"})
    assert r.status_code == 503


def test_start_with_handoff_body(http):
    body = {
        "course": "gst101",
        "competitionId": "c42",
        "examType": "mock",
        "timeAllowed": 15,
        "questions": [
            {"_id": "x1", "question": "?", "options": ["a", "b"], "correctOption": 1},
            {"_id": "x2", "question": "?", "options": ["a", "b"], "correctOption": 2},
        ],
    }
    r = http.post("/api/exam/start", json=body)
    assert r.status_code == 200
    assert r.json()["session_key"] == "mock_progress_gst101_c42"

    body["questions"] = []
    assert http.post("/api/exam/start", json=body).status_code == 400


def test_leaderboard_csv(http, fake):
    fake.get_leaderboard = lambda cid: [
        {"rank": 1, "user": {"fullName": "Ada"}, "courseScores": [{"courseCode": "phy", "score": 70}]},
    ]
    r = http.get("/api/competitions/c1/leaderboard.csv", params={"name": "Cup"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "Cup_leaderboard_" in r.headers["content-disposition"]
    assert r.text.splitlines()[0].endswith('"phy Score (%)"')


class _MalformedQuestionsSession:
    headers = {}

    def request(self, method, url, timeout=None, **kwargs):
        resp = requests.Response()
        resp.status_code = 200
        resp._content = b'{"questions": [{"_id": "x", "question": "?", "options": ["a"], "correctOption": 3}]}'
        return resp


def test_load_malformed_questions_is_503():
    client = RemoteDataClient("http://api.test", session=_MalformedQuestionsSession(), retries=1)
    app = create_app(client=client, store=MemoryStore(), sync_workers=0)
    with TestClient(app) as c:
        r = c.post("/api/exam/load", json={"course": "MTH101", "year": "2023"})
        assert r.status_code == 503


def test_navigate_after_finish_is_400_and_progress_stays_cleared(http):
    start_sample(http, "mock")
    http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 2})
    http.post("/api/exam/finish")
    assert http.post("/api/exam/navigate", json={"index": 3}).status_code == 400
    state = start_sample(http, "mock")
    assert state["resumed"] is False
    assert state["answers"] == {}


def test_corrections_after_finish(http):
    start_sample(http, "mock")
    assert http.get("/api/exam/corrections").status_code == 400
    http.post("/api/exam/answer", json={"question_id": "sample-1", "option": 2})
    http.post("/api/exam/answer", json={"question_id": "sample-2", "option": 1})
    http.post("/api/exam/finish")
    body = http.get("/api/exam/corrections").json()
    assert body["total"] == 4
    ids = [q["id"] for q in body["questions"]]
    assert ids == ["sample-2", "sample-3", "sample-4", "sample-5"]
    assert body["questions"][0]["correct_option"] == 2
    assert body["questions"][0]["saved_answer"] == 1


def test_sync_executor_is_shut_down_with_app(fake):
    app = create_app(client=fake, store=MemoryStore(), sync_workers=1)
    with TestClient(app) as c:
        start_sample(c)
        assert app.state.executor.submit(lambda: 1).result() == 1
    with pytest.raises(RuntimeError):
        app.state.executor.submit(lambda: 1)
