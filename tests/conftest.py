from concurrent.futures import Future

import pytest

from smartdriller.errors import NetworkFailure
from smartdriller.models.question_model import Question
from smartdriller.services.notifier import ToastQueue
from smartdriller.services.session_controller import ExamSessionController
from smartdriller.services.storage import MemoryStore


def make_question(qid, correct=1, n_options=4, topic="Algebra"):
    return Question(
        _id=qid,
        question=f"Question {qid}?",
        options=[f"opt {i}" for i in range(1, n_options + 1)],
        correctOption=correct,
        explanation=f"Because {qid}.",
        topic=topic,
    )


class FakeClient:
    """RemoteDataClient 대역. 호출을 기록하고, fail 에 넣은 메서드는 NetworkFailure."""

    def __init__(self, bookmarks=None, fail=()):
        self.calls = []
        self.fail = set(fail)
        self.bookmarks = set(bookmarks or ())
        self.server_bookmarks = set(self.bookmarks)
        self.results = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise NetworkFailure(f"{name} down")

    def get_bookmarks(self):
        self._record("get_bookmarks")
        return set(self.bookmarks)

    def post_bookmark(self, qid):
        self._record("post_bookmark", qid)
        self.server_bookmarks.add(qid)

    def delete_bookmark(self, qid):
        self._record("delete_bookmark", qid)
        self.server_bookmarks.discard(qid)

    def post_study_progress(self, qid):
        self._record("post_study_progress", qid)

    def post_report(self, qid, description):
        self._record("post_report", qid, description)

    def submit_result(self, payload):
        self._record("submit_result", payload)
        self.results.append(payload)
        return {"_id": "r1", "percentage": 0}

    def fetch_questions(self, course, year, mode, topics="all", question_count="all"):
        self._record("fetch_questions", course, year)
        return [make_question(f"f{i}", correct=1) for i in range(1, 4)]

    def get_leaderboard(self, competition_id):
        self._record("get_leaderboard", competition_id)
        return []


class ManualExecutor:
    """submit 된 작업을 쌓아두고, 테스트가 원하는 순서로 실행한다."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((fn, args, kwargs, future))
        return future

    def run(self, index):
        fn, args, kwargs, future = self.pending[index]
        future.set_result(fn(*args, **kwargs))

    def run_all(self):
        for i in range(len(self.pending)):
            self.run(i)


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def questions():
    return [make_question(f"q{i}", correct=(i % 4) + 1) for i in range(1, 6)]


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def toasts():
    return ToastQueue()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_controller(store, toasts, client, clock):
    def _make(**kwargs):
        params = dict(store=store, notifier=toasts, client=client, clock=clock)
        params.update(kwargs)
        return ExamSessionController(**params)
    return _make
