"""
Presentation API Router
EPC-ranked questions and offers for the survey runtime.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from survai.api.deps import envelope, get_epc_calculator, get_presentation_service, raise_http
from survai.core.errors import TrackingError
from survai.services.epc_calculator import EpcCalculator
from survai.services.presentation import PresentationService

router = APIRouter()


@router.get("/offers/ranked")
async def list_ranked_offers(service: PresentationService = Depends(get_presentation_service)):
    """Active offers ranked by EPC (rank 1 is best)."""
    return envelope(await service.ranked_offers())


@router.get("/epc/{subject_id}")
def get_subject_epc(subject_id: str, calculator: EpcCalculator = Depends(get_epc_calculator)):
    """Current EPC metric for an offer or a question."""
    try:
        metric = calculator.compute_epc(subject_id)
    except TrackingError as exc:
        raise_http(exc)
    return envelope(metric.to_payload())


@router.get("/surveys/{survey_id}/questions")
async def list_survey_questions(
    survey_id: str,
    service: PresentationService = Depends(get_presentation_service),
):
    """Survey questions in presentation order."""
    try:
        questions = await service.questions_for_survey(survey_id)
    except TrackingError as exc:
        raise_http(exc)
    return envelope(questions)


@router.get("/questions/{question_id}/offers")
async def list_question_offers(
    question_id: str,
    service: PresentationService = Depends(get_presentation_service),
):
    """Active offers for a question, best EPC first."""
    try:
        offers = await service.offers_for_question(question_id)
    except TrackingError as exc:
        raise_http(exc)
    return envelope([offer.to_payload() for offer in offers])
