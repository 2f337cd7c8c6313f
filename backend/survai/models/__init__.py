"""Database models."""
from survai.models.models import (
    Survey,
    Question,
    Offer,
    QuestionOffer,
    SurveyResponse,
    ClickTrack,
)

__all__ = [
    "Survey",
    "Question",
    "Offer",
    "QuestionOffer",
    "SurveyResponse",
    "ClickTrack",
]
