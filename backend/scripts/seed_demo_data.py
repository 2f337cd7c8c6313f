#!/usr/bin/env python3
"""
Seed a demo survey with questions, offers and one respondent session.
Run this once after migrating the database.
"""
import argparse
import uuid

# Add parent to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from survai.core.database import SessionLocal, engine, Base
from survai.models.models import Offer, Question, QuestionOffer, Survey, SurveyResponse


DEMO_OFFERS = [
    {"title": "Budget Travel Deals", "status": "ACTIVE", "payout": 12.50},
    {"title": "Cloud Storage Trial", "status": "ACTIVE", "payout": 25.00},
    {"title": "Fitness Tracker Discount", "status": "ACTIVE", "payout": 8.00},
    {"title": "Legacy Credit Card", "status": "PAUSED", "payout": 40.00},
]

DEMO_QUESTIONS = [
    "Are you planning a trip in the next three months?",
    "Do you back up your photos?",
    "How often do you exercise each week?",
]


def seed(session_id: str | None = None) -> dict:
    db = SessionLocal()
    try:
        survey = Survey(title="Demo Offer Survey", status="ACTIVE")
        db.add(survey)
        db.flush()

        offers = []
        for entry in DEMO_OFFERS:
            offer = Offer(
                title=entry["title"],
                status=entry["status"],
                destination_url="https://example.com/offer?click_id={click_id}&survey_id={survey_id}",
                pixel_url="https://example.com/pixel",
                config={"payout": entry["payout"], "currency": "USD"},
                metrics={},
            )
            db.add(offer)
            offers.append(offer)
        db.flush()

        for order, text in enumerate(DEMO_QUESTIONS, start=1):
            question = Question(survey_id=survey.id, text=text, order=order)
            db.add(question)
            db.flush()
            for position, offer in enumerate(offers, start=1):
                db.add(QuestionOffer(question_id=question.id, offer_id=offer.id, position=position))

        clean_session_id = session_id or f"demo-session-{uuid.uuid4()}"
        db.add(
            SurveyResponse(
                survey_id=survey.id,
                session_id=clean_session_id,
                session_data={"sessionId": clean_session_id, "userAgent": "seed script"},
            )
        )
        db.commit()
        return {
            "survey_id": survey.id,
            "session_id": clean_session_id,
            "offer_ids": [offer.id for offer in offers],
        }
    finally:
        db.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed a demo survey with offers.")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables via SQLAlchemy metadata (dev only). Prefer running Alembic migrations instead.",
    )
    parser.add_argument("--session-id", default=None, help="Session id for the seeded respondent.")
    args = parser.parse_args()

    if args.create_tables:
        Base.metadata.create_all(bind=engine)
    print(seed(session_id=args.session_id))


if __name__ == "__main__":
    main()
