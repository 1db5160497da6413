import pytest

from ekskul_recommender.exceptions import DataFetchError
from ekskul_recommender.recommender.models import (
    ActivityRecord,
    QuestionRecord,
    RatingRecord,
    ResponseRecord,
    ScoringConfig,
    UserRecord,
)
from ekskul_recommender.web.services.recommendation_service import RecommendationService


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDataSource:
    """In-memory data source, đếm số lần mỗi fetch được gọi."""

    def __init__(self, users=(), activities=(), questions=(), ratings=(), responses=()):
        self.users = list(users)
        self.activities = list(activities)
        self.questions = list(questions)
        self.ratings = list(ratings)
        self.responses = list(responses)
        self.calls = {
            "ratings": 0,
            "responses": 0,
            "questions": 0,
            "activities": 0,
            "users": 0,
        }
        self.fail_on = set()
        # source -> exception raise nguyên bản (không wrap)
        self.errors = {}

    def _record(self, source: str) -> None:
        self.calls[source] += 1
        if source in self.errors:
            raise self.errors[source]
        if source in self.fail_on:
            raise DataFetchError(source, "connection refused")

    async def fetch_ratings(self):
        self._record("ratings")
        return list(self.ratings)

    async def fetch_responses(self):
        self._record("responses")
        return list(self.responses)

    async def fetch_questions(self):
        self._record("questions")
        return list(self.questions)

    async def fetch_activities(self):
        self._record("activities")
        return list(self.activities)

    async def fetch_users(self, non_admin_only: bool = True):
        self._record("users")
        if non_admin_only:
            return [u for u in self.users if not u.is_admin]
        return list(self.users)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def school_data():
    """
    Dataset nhỏ:
    - budi: rate basket=5, answered Olahraga=4
    - sari: rate basket=5, futsal=4, answered Olahraga=5
    - dewi: rate paduan_suara=5, answered Seni=5
    - andi: không có data
    - admin: bị loại khỏi scoring
    """
    users = [
        UserRecord(id="budi", name="Budi Santoso", handle="budi", photo_url="https://cdn.sekolah.id/budi.png"),
        UserRecord(id="sari", name="Sari Wulandari", handle="sari"),
        UserRecord(id="dewi", name="Dewi Lestari", handle="dewi"),
        UserRecord(id="andi", name="Andi Pratama", handle="andi"),
        UserRecord(id="admin", name="Admin", handle="admin", is_admin=True),
    ]
    activities = [
        ActivityRecord(id="basket", name="Basket", categories=()),
        ActivityRecord(id="futsal", name="Futsal", categories=("Olahraga",)),
        ActivityRecord(id="paduan_suara", name="Paduan Suara", categories=("Seni",)),
        ActivityRecord(id="pramuka", name="Pramuka", categories=()),
    ]
    questions = [
        QuestionRecord(id="1", category="Olahraga", text="Saya suka berolahraga"),
        QuestionRecord(id="2", category="Seni", text="Saya suka bernyanyi"),
    ]
    ratings = [
        RatingRecord(user_id="budi", activity_id="basket", rating=5),
        RatingRecord(user_id="sari", activity_id="basket", rating=5),
        RatingRecord(user_id="sari", activity_id="futsal", rating=4),
        RatingRecord(user_id="dewi", activity_id="paduan_suara", rating=5),
    ]
    responses = [
        ResponseRecord(user_id="budi", question_id="1", score=4),
        ResponseRecord(user_id="sari", question_id="1", score=5),
        ResponseRecord(user_id="dewi", question_id="2", score=5),
    ]
    return FakeDataSource(
        users=users,
        activities=activities,
        questions=questions,
        ratings=ratings,
        responses=responses,
    )


@pytest.fixture
def make_service(clock):
    def _make(data_source, **kwargs):
        kwargs.setdefault("config", ScoringConfig())
        kwargs.setdefault("clock", clock)
        return RecommendationService(data_source, **kwargs)
    return _make


@pytest.fixture
def fake_source_cls():
    return FakeDataSource
