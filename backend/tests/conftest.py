from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from survai.core.database import Base
from survai.models.models import Offer, Question, QuestionOffer, Survey, SurveyResponse


@pytest.fixture
def session_factory():
    """In-memory ledger for single-threaded service tests."""
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, future=True, autoflush=False)
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed ledger; one connection per thread for concurrent EPC lookups."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, future=True, autoflush=False)
    engine.dispose()


def _seed_catalog(
    SessionLocal,
    *,
    offers: dict[str, str] | None = None,
    questions: dict[str, int] | None = None,
    links: dict[str, list[str]] | None = None,
    sessions: tuple[str, ...] = ("S1",),
    survey_id: str = "SV1",
) -> None:
    """Insert a survey, offers (id -> status), questions (id -> order) and sessions."""
    offers = {"O1": "ACTIVE"} if offers is None else offers
    questions = {"Q1": 1} if questions is None else questions
    links = links or {}
    with SessionLocal() as db:
        db.add(Survey(id=survey_id, title="Survey", status="ACTIVE"))
        for offer_id, status in offers.items():
            db.add(
                Offer(
                    id=offer_id,
                    title=f"Offer {offer_id}",
                    status=status,
                    destination_url="https://offers.example.com/go?c={click_id}",
                    metrics={},
                )
            )
        for question_id, order in questions.items():
            db.add(Question(id=question_id, survey_id=survey_id, text=f"Question {question_id}", order=order))
        db.flush()
        for question_id, offer_ids in links.items():
            for position, offer_id in enumerate(offer_ids, start=1):
                db.add(QuestionOffer(question_id=question_id, offer_id=offer_id, position=position))
        for session_id in sessions:
            db.add(SurveyResponse(id=f"R-{session_id}", survey_id=survey_id, session_id=session_id))
        db.commit()


@pytest.fixture
def seed_catalog():
    return _seed_catalog
