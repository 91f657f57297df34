from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from debate_arena.main import app
from debate_arena.api.v1 import debates as debates_api
from debate_arena.api.v1 import identities as identities_api
from debate_arena.core.config import get_settings
from debate_arena.core.errors import JudgeError
from debate_arena.db.base import Base
from debate_arena.models import debate as debate_model  # noqa: F401
from debate_arena.models import event as event_model  # noqa: F401
from debate_arena.models import identity as identity_model  # noqa: F401
from debate_arena.schemas.debate import DebateState
from debate_arena.schemas.judging import ArgumentScore, DebateAnalysis
from debate_arena.services.engine import DebateService
from debate_arena.services.judge import Judge
from debate_arena.services.scoring import ScorerAdapter
from debate_arena.services.store import DebateStore
from debate_arena.services.subscriptions import SubscriptionHub


SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    future=True,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def override_get_db() -> Generator:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FrozenClock:
    """Server clock that only moves when a test says so."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class FakeJudge(Judge):
    def __init__(self, score: float = 7.0, fail: bool = False, winner: Optional[str] = None) -> None:
        self.score = score
        self.fail = fail
        self.winner = winner
        self.score_calls = 0
        self.analyze_calls = 0

    @property
    def name(self) -> str:
        return "fake"

    def score_argument(self, text, slot, topic, prior_arguments) -> ArgumentScore:
        self.score_calls += 1
        if self.fail:
            raise JudgeError("judge offline")
        return ArgumentScore(
            score=self.score,
            reasoning="Clear and relevant.",
            strengths=["clear"],
            weaknesses=[],
            fallacies=[],
        )

    def analyze_debate(
        self, topic, position_a, position_b, a_arguments, b_arguments, a_average, b_average
    ) -> DebateAnalysis:
        self.analyze_calls += 1
        if self.fail:
            raise JudgeError("judge offline")
        if self.winner is not None:
            winner = self.winner
        elif a_average > b_average:
            winner = "a"
        elif b_average > a_average:
            winner = "b"
        else:
            winner = "tie"
        return DebateAnalysis(
            winner=winner,
            a_score=a_average,
            b_score=b_average,
            summary="Decided by the test judge.",
        )


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    # identities.get_db is the one dependency every router shares.
    app.dependency_overrides[identities_api.get_db] = override_get_db

    yield

    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.clear()


@pytest.fixture()
def api_clock() -> Generator:
    clock = FrozenClock()
    app.dependency_overrides[debates_api.get_clock] = lambda: clock
    yield clock
    app.dependency_overrides.pop(debates_api.get_clock, None)


@pytest.fixture()
def api_judge() -> Generator:
    judge = FakeJudge()
    app.dependency_overrides[debates_api.get_judge] = lambda: judge
    yield judge
    app.dependency_overrides.pop(debates_api.get_judge, None)


@pytest.fixture()
def client(api_clock: FrozenClock, api_judge: FakeJudge) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def register(client: TestClient) -> Callable[[str], dict]:
    """Register an identity and return its id and auth headers."""

    def _register(name: str) -> dict:
        resp = client.post("/v1/identities/register", json={"display_name": name})
        assert resp.status_code == 200
        data = resp.json()
        return {"id": data["identity_id"], "headers": {"X-API-Key": data["api_key"]}}

    return _register


@pytest.fixture()
def db_session() -> Generator:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def judge() -> FakeJudge:
    return FakeJudge()


@pytest.fixture()
def hub() -> SubscriptionHub:
    return SubscriptionHub()


def build_service(db: Session, judge: Judge, clock: FrozenClock, hub: SubscriptionHub) -> DebateService:
    scorer = ScorerAdapter(judge, fallback_score=5.0, attempts=2)
    return DebateService(DebateStore(db, hub=hub), scorer, clock, get_settings())


@pytest.fixture()
def service(db_session: Session, judge: FakeJudge, clock: FrozenClock, hub: SubscriptionHub) -> DebateService:
    return build_service(db_session, judge, clock, hub)


@pytest.fixture()
def ready_debate(service: DebateService) -> Callable[..., DebateState]:
    """Seat alice in slot A (as creator) and bob in slot B (approved)."""

    def _ready(max_rounds: int = 2, round_time_limit_seconds: int = 60) -> DebateState:
        state = service.create_debate(
            "alice",
            "Cats make better pets than dogs",
            max_rounds=max_rounds,
            round_time_limit_seconds=round_time_limit_seconds,
        )
        service.join(state.id, "alice", "Alice", "Cats are better")
        service.request_join(state.id, "bob", "Bob")
        service.resolve_join_request(state.id, "alice", "bob", approve=True)
        return service.join(state.id, "bob", "Bob", "Dogs are better")

    return _ready


@pytest.fixture()
def second_service(judge: FakeJudge, clock: FrozenClock, hub: SubscriptionHub) -> Generator:
    """A service on its own session, standing in for a concurrent request."""
    db = TestingSessionLocal()
    try:
        yield build_service(db, judge, clock, hub)
    finally:
        db.close()
