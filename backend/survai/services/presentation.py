"""
Survey presentation order: questions of a survey and offers of a question,
ranked by EPC through the ranking engine.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

from sqlalchemy.orm import Session

from survai.core.config import settings
from survai.core.errors import NotFoundError
from survai.models.models import Offer, Question, QuestionOffer, Survey
from survai.services.offers import ACTIVE_STATUS, OfferView, load_active_offers
from survai.services.ranking import RankableItem, RankingEngine


def _question_payload(question: Question) -> dict[str, Any]:
    return {
        "id": str(question.id),
        "surveyId": str(question.survey_id),
        "text": question.text,
        "order": int(question.order or 0),
    }


class PresentationService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        ranking_engine: RankingEngine,
        *,
        offer_limit: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ranking = ranking_engine
        self._offer_limit = int(settings.RANKED_OFFER_LIMIT if offer_limit is None else offer_limit)

    def _load_survey_questions(self, survey_id: str) -> list[RankableItem]:
        db = self._session_factory()
        try:
            if db.get(Survey, survey_id) is None:
                raise NotFoundError(f"Survey {survey_id} not found")
            questions = (
                db.query(Question)
                .filter(Question.survey_id == survey_id)
                .order_by(Question.order.asc(), Question.id.asc())
                .all()
            )
            return [
                RankableItem(id=str(q.id), static_order=int(q.order or 0), payload=_question_payload(q))
                for q in questions
            ]
        finally:
            db.close()

    def _load_question_offers(self, question_id: str) -> list[RankableItem]:
        db = self._session_factory()
        try:
            if db.get(Question, question_id) is None:
                raise NotFoundError(f"Question {question_id} not found")
            rows = (
                db.query(QuestionOffer, Offer)
                .join(Offer, Offer.id == QuestionOffer.offer_id)
                .filter(
                    QuestionOffer.question_id == question_id,
                    Offer.status == ACTIVE_STATUS,
                )
                .order_by(QuestionOffer.position.asc(), Offer.id.asc())
                .all()
            )
            return [
                RankableItem(
                    id=str(offer.id),
                    static_order=int(link.position or 0),
                    payload=OfferView.from_row(offer),
                )
                for link, offer in rows
            ]
        finally:
            db.close()

    def _load_active_offers(self) -> list[OfferView]:
        db = self._session_factory()
        try:
            return load_active_offers(db)
        finally:
            db.close()

    async def questions_for_survey(self, survey_id: str) -> list[dict[str, Any]]:
        items = await asyncio.to_thread(self._load_survey_questions, survey_id)
        ranked = await self._ranking.order_by_epc(items)
        return [item.payload for item in ranked]

    async def offers_for_question(self, question_id: str) -> list[OfferView]:
        items = await asyncio.to_thread(self._load_question_offers, question_id)
        ranked = await self._ranking.order_by_epc(items)
        return [item.payload for item in ranked[: max(0, self._offer_limit)]]

    async def ranked_offers(self) -> list[dict[str, Any]]:
        offers = await asyncio.to_thread(self._load_active_offers)
        return await self._ranking.rank_offers(offers)
