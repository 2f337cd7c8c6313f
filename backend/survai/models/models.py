"""
SQLAlchemy models for SurvAI tracking.
"""
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DECIMAL,
    ForeignKey, DateTime, JSON, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from survai.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Survey(Base):
    """A survey that interleaves questions with offers."""
    __tablename__ = "surveys"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    questions = relationship("Question", back_populates="survey", cascade="all, delete-orphan")


class Question(Base):
    """Survey question. `order` is its static (fallback) position."""
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    survey_id = Column(String(36), ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    survey = relationship("Survey", back_populates="questions")
    offer_links = relationship(
        "QuestionOffer",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOffer.position",
    )

    __table_args__ = (
        Index("idx_questions_survey_order", "survey_id", "order"),
    )


class Offer(Base):
    """Affiliate offer shown as a CTA button."""
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    destination_url = Column(Text, nullable=False)
    pixel_url = Column(Text, nullable=True)
    config = Column(JSON, default=dict)
    # Denormalised EPC snapshot for dashboards; ranking always recomputes.
    metrics = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    clicks = relationship("ClickTrack", back_populates="offer")

    __table_args__ = (
        CheckConstraint("status IN ('ACTIVE', 'PAUSED', 'ARCHIVED')", name="valid_offer_status"),
    )


class QuestionOffer(Base):
    """Offers reachable from a question, in static order."""
    __tablename__ = "question_offers"

    id = Column(Integer, primary_key=True)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=1)

    question = relationship("Question", back_populates="offer_links")
    offer = relationship("Offer")

    __table_args__ = (
        UniqueConstraint("question_id", "offer_id", name="uq_question_offers_question_offer"),
    )


class SurveyResponse(Base):
    """A respondent session; the session registry for click validation."""
    __tablename__ = "survey_responses"

    id = Column(String(36), primary_key=True, default=_new_id)
    survey_id = Column(String(36), ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(String(255), unique=True, nullable=False)
    session_data = Column(JSON, default=dict)
    status = Column(String(20), nullable=False, default="IN_PROGRESS")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('IN_PROGRESS', 'COMPLETED', 'ABANDONED')",
            name="valid_response_status",
        ),
    )


class ClickTrack(Base):
    """
    Ledger row for one CTA click.

    Written once by the click tracker and mutated at most once afterwards,
    when the click converts.
    """
    __tablename__ = "click_tracks"

    id = Column(String(36), primary_key=True, default=_new_id)
    click_id = Column(String(64), nullable=False)
    offer_id = Column(String(36), ForeignKey("offers.id"), nullable=False)
    response_id = Column(String(36), ForeignKey("survey_responses.id", ondelete="SET NULL"), nullable=True)
    session_data = Column(JSON, default=dict)
    status = Column(String(20), nullable=False, default="VALID")
    converted = Column(Boolean, nullable=False, default=False)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    revenue = Column(DECIMAL(10, 2), nullable=True)
    clicked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    click_metadata = Column(JSON, default=dict)

    offer = relationship("Offer", back_populates="clicks")
    response = relationship("SurveyResponse")

    __table_args__ = (
        UniqueConstraint("click_id", name="uq_click_tracks_click_id"),
        CheckConstraint("status IN ('VALID', 'INVALID')", name="valid_click_status"),
        CheckConstraint("revenue IS NULL OR revenue >= 0", name="non_negative_revenue"),
        Index("idx_click_tracks_offer_clicked_at", "offer_id", "clicked_at"),
        Index("idx_click_tracks_offer_converted", "offer_id", "converted"),
    )
